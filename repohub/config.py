"""
Store configuration.

Settings come from an optional JSON file, then environment overrides:

    REPOHUB_DB              database path (":memory:" keeps everything in-process)
    REPOHUB_DEFAULT_BRANCH  branch created with every new repository
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .cas import MEMORY_DB
from .serializable import Serializable

logger = logging.getLogger(__name__)

CONFIG_VERSION = "0.1.0"

# Known config keys for validation
KNOWN_CONFIG_KEYS = frozenset(
    {
        "version",
        "db_path",
        "default_branch",
    }
)

ENV_DB = "REPOHUB_DB"
ENV_DEFAULT_BRANCH = "REPOHUB_DEFAULT_BRANCH"


@dataclass
class StoreConfig(Serializable):
    version: str = CONFIG_VERSION
    db_path: str = MEMORY_DB
    default_branch: str = "main"


def _version_tuple(version: str) -> tuple:
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError:
        raise ValueError(f"Invalid config version: {version!r}") from None


def validate_config(config: dict) -> None:
    """Validate config version and warn on unknown keys."""
    version = config.get("version")
    if version and _version_tuple(version) > _version_tuple(CONFIG_VERSION):
        raise ValueError(
            f"Config version {version} is newer than this version of repohub "
            f"({CONFIG_VERSION}). Please upgrade repohub to use it."
        )

    # Warn on unknown keys but still load
    unknown_keys = set(config.keys()) - KNOWN_CONFIG_KEYS
    if unknown_keys:
        logger.warning("Unknown config keys (ignored): %s", ", ".join(sorted(unknown_keys)))

    default_branch = config.get("default_branch")
    if default_branch is not None and not str(default_branch).strip():
        raise ValueError("Invalid config: default_branch cannot be empty")


def load_config(path: Path | str | None = None, environ: dict | None = None) -> StoreConfig:
    """Read *path* (if given) and apply environment overrides."""
    environ = os.environ if environ is None else environ
    data: dict = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ValueError(f"Config file not found: {config_path}")
        data = json.loads(config_path.read_text())
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a JSON object: {config_path}")

    if environ.get(ENV_DB):
        data["db_path"] = environ[ENV_DB]
    if environ.get(ENV_DEFAULT_BRANCH):
        data["default_branch"] = environ[ENV_DEFAULT_BRANCH]

    validate_config(data)
    known = {k: v for k, v in data.items() if k in KNOWN_CONFIG_KEYS}
    return StoreConfig.from_dict(known)
