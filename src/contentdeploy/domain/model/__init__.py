"""Domain model for content records and entity type metadata."""

from __future__ import annotations

from .entity import (
    ContentEntity,
    EntityReference,
    FieldItems,
    FieldValues,
    max_changed_time,
    parse_timestamp,
)
from .entity_types import (
    DEFAULT_ENTITY_TYPES,
    CoreEntityType,
    EntityTypeDefinition,
    EntityTypeRegistry,
    UnknownEntityTypeError,
)

__all__ = [
    "DEFAULT_ENTITY_TYPES",
    "ContentEntity",
    "CoreEntityType",
    "EntityReference",
    "EntityTypeDefinition",
    "EntityTypeRegistry",
    "FieldItems",
    "FieldValues",
    "UnknownEntityTypeError",
    "max_changed_time",
    "parse_timestamp",
]
