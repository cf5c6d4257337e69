"""Errors raised while resolving run configuration.

All of them are fatal and surface before the first snapshot is read.
"""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Base class for unusable configuration."""


class MissingConfigurationError(ConfigurationError):
    """A required setting was neither passed nor found in the environment."""

    def __init__(self, setting: str, hint: str | None = None) -> None:
        self.setting = setting
        message = f"Missing configuration for: {setting}"
        super().__init__(f"{message} ({hint})" if hint else message)


class InvalidConfigurationError(ConfigurationError):
    """A setting is present but cannot be used."""
