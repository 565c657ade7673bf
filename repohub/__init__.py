"""
repohub: a content-addressed, version-controlled file repository engine.

Repositories own a working set of files, a branch graph and an
immutable commit history, plus collaborator and governance metadata
that can be anchored to external ledgers.
"""

__version__ = "0.1.0"

__all__ = [
    # Core
    "RepositoryStore",
    "StoreConfig",
    "load_config",
    # Data model
    "Repository",
    "Branch",
    "Commit",
    "FileEntry",
    "Proposal",
    "ChainMetadata",
    "CommitMetadata",
    # Errors
    "RepoHubError",
    "NotFound",
    "Unauthorized",
    "Conflict",
    "ValidationError",
    # Content-addressed store
    "ContentStore",
    "hash_blob",
]

_MODELS = (
    "Repository",
    "Branch",
    "Commit",
    "FileEntry",
    "Proposal",
    "ChainMetadata",
    "CommitMetadata",
)
_ERRORS = ("RepoHubError", "NotFound", "Unauthorized", "Conflict", "ValidationError")


# Lazy imports, resolved on first access
def __getattr__(name):
    if name == "RepositoryStore":
        from .store import RepositoryStore

        return RepositoryStore
    if name in ("StoreConfig", "load_config"):
        from .config import StoreConfig, load_config

        return StoreConfig if name == "StoreConfig" else load_config
    if name in _MODELS:
        from . import models

        return getattr(models, name)
    if name in _ERRORS:
        from . import errors

        return getattr(errors, name)
    if name in ("ContentStore", "hash_blob"):
        from .cas import ContentStore, hash_blob

        return ContentStore if name == "ContentStore" else hash_blob
    raise AttributeError(f"module 'repohub' has no attribute {name!r}")
