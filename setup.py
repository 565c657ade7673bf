from setuptools import find_packages, setup

setup(
    name="repohub",
    version="0.1.0",
    packages=find_packages(include=["repohub", "repohub.*"]),
    entry_points={
        "console_scripts": [
            "repohub=repohub.cli:main",
        ],
    },
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.10",
    description="repohub: content-addressed, version-controlled file repositories",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Version Control",
        "Programming Language :: Python :: 3.12",
    ],
)
