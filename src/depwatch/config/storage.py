"""Where depwatch keeps its database and the working directories for archives."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env

APP_DIR_NAME: Final[str] = "depwatch"
DEFAULT_DB_FILENAME: Final[str] = "depwatch.db"
WORK_DIR_NAME: Final[str] = "tmp"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local data directory.

    It holds the fallback SQLite database and, under ``tmp/``, one directory per
    archive being unpacked.
    """

    data_dir: Path

    @property
    def root(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def work_dir(self) -> Path:
        return self.root / WORK_DIR_NAME

    def database_uri(self) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{self.root / DEFAULT_DB_FILENAME}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _default_data_dir() -> Path:
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    base = Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"
    return base / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    data_dir = optional_env("DEPWATCH_DATA_DIR")
    return StorageConfig(data_dir=Path(data_dir) if data_dir else _default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file inside the data directory."""

    uri = optional_env("DATABASE_URI")
    if uri is None:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri)
