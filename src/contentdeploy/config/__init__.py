"""Application configuration helpers."""

from __future__ import annotations

from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .importer import ImportConfig, get_import_config
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "ImportConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_import_config",
    "get_storage_config",
]
