"""Exceptions raised while importing content snapshots."""

from __future__ import annotations

from contentdeploy.domain.model import UnknownEntityTypeError


class ContentImportError(Exception):
    """Base class for import failures."""


class SnapshotSourceError(ContentImportError, OSError):
    """Raised when the snapshot directory cannot be read."""


class DecodeError(ContentImportError):
    """Raised when a snapshot file does not hold a valid payload."""


class PersistenceError(ContentImportError):
    """Raised when storage rejects a record."""


__all__ = [
    "ContentImportError",
    "DecodeError",
    "PersistenceError",
    "SnapshotSourceError",
    "UnknownEntityTypeError",
]
