"""Domain ports for external collaborators."""

from __future__ import annotations

from .codec import LinkTypeResolver, PreSaveHook, SnapshotCodec
from .persistence import EntityRepository, WatermarkStore
from .unit_of_work import ContentRepositories, ContentUnitOfWork

__all__ = [
    "ContentRepositories",
    "ContentUnitOfWork",
    "EntityRepository",
    "LinkTypeResolver",
    "PreSaveHook",
    "SnapshotCodec",
    "WatermarkStore",
]
