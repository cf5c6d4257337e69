"""Location of the local content store."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "contentdeploy"
DEFAULT_DB_FILENAME: Final[str] = "contentdeploy.db"

DATA_DIR_ENV: Final[str] = "CONTENTDEPLOY_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
DATABASE_ECHO_ENV: Final[str] = "DATABASE_ECHO"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Data directory holding the default SQLite content store."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    @property
    def database_path(self) -> Path:
        return self.data_dir.expanduser().resolve() / self.database_filename

    def sqlite_uri(self) -> str:
        """Return the SQLite URI of the store, creating its directory."""

        path = self.database_path
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{path}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


def get_storage_config() -> StorageConfig:
    configured = os.getenv(DATA_DIR_ENV)
    if configured:
        return StorageConfig(data_dir=Path(configured))
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    base = Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"
    return StorageConfig(data_dir=base / APP_DIR_NAME)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise the SQLite file in the data directory."""

    echo = os.getenv(DATABASE_ECHO_ENV, "").strip().lower() in {"1", "true", "yes"}
    uri = os.getenv(DATABASE_URI_ENV) or (storage or get_storage_config()).sqlite_uri()
    return DatabaseConfig(uri=uri, echo=echo)
