"""
Configuration management for graph stores.

The configuration is stored as a TOML file in the store directory. It
records the storage backend and whether new objects are linked to their
daily note automatically.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w


CONFIG_FILENAME = "graphnote.toml"
CONFIG_VERSION = 1
DB_FILENAME = "graphnote.db"
DEFAULT_STORE_DIR = ".graphnote"


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    backend: str = "local"
    auto_link: bool = True

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def db_path(self) -> Path:
        return self.path / DB_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_store_path(explicit: Optional["str | Path"] = None) -> Path:
    """
    Resolve the store directory.

    Priority:
    1. Explicit argument
    2. GRAPHNOTE_STORE_PATH environment variable
    3. ~/.graphnote
    """
    if explicit:
        return Path(explicit).expanduser().resolve()
    env = os.environ.get("GRAPHNOTE_STORE_PATH")
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / DEFAULT_STORE_DIR


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config {config_path}: {e}") from e

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    auto_link = data.get("timeline", {}).get("auto_link", True)
    if not isinstance(auto_link, bool):
        raise ValueError(f"timeline.auto_link must be true or false, got {auto_link!r}")

    return StoreConfig(
        path=store_path,
        version=version,
        created=store.get("created", ""),
        backend=store.get("backend", "local"),
        auto_link=auto_link,
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "backend": config.backend,
        },
        "timeline": {
            "auto_link": config.auto_link,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    if (store_path / CONFIG_FILENAME).exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
