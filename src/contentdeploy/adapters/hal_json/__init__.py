"""Public interface for the HAL+JSON snapshot adapter."""

from __future__ import annotations

from .codec import HalJsonCodec
from .links import (
    HalLinkTypeResolver,
    RelationLink,
    entity_link,
    relation_link_path,
    type_link_path,
)
from .schema import HalDocument

__all__ = [
    "HalDocument",
    "HalJsonCodec",
    "HalLinkTypeResolver",
    "RelationLink",
    "entity_link",
    "relation_link_path",
    "type_link_path",
]
