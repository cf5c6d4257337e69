"""Entity type metadata, resolved once per snapshot file.

The registry replaces runtime type reflection: every entity type the importer
knows about is described by one :class:`EntityTypeDefinition` holding the
schema keys and capabilities the reconciliation core needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class CoreEntityType(StrEnum):
    """Entity types with special handling during import."""

    NODE = "node"
    TAXONOMY_TERM = "taxonomy_term"
    MEDIA = "media"
    COMMERCE_PRODUCT = "commerce_product"
    USER = "user"
    FILE = "file"
    PATH_ALIAS = "path_alias"
    PARAGRAPH = "paragraph"
    BLOCK_CONTENT = "block_content"
    MENU_LINK_CONTENT = "menu_link_content"
    COMMENT = "comment"


class UnknownEntityTypeError(LookupError):
    """Raised when no definition is registered for an entity type."""


@dataclass(frozen=True, slots=True, kw_only=True)
class EntityTypeDefinition:
    """Schema keys and capabilities of one entity type."""

    entity_type_id: str
    id_key: str = "id"
    uuid_key: str = "uuid"
    revision_key: str | None = None
    # live records expose a per-translation "changed" time
    supports_changed: bool = True
    # computed path data is exported but must not be imported
    strip_path: bool = False
    # pre-hashed credential written around the normal save path
    credential_field: str | None = None


DEFAULT_ENTITY_TYPES: tuple[EntityTypeDefinition, ...] = (
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.NODE, id_key="nid", revision_key="vid", strip_path=True
    ),
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.TAXONOMY_TERM,
        id_key="tid",
        revision_key="revision_id",
        strip_path=True,
    ),
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.MEDIA, id_key="mid", revision_key="vid", strip_path=True
    ),
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.COMMERCE_PRODUCT, id_key="product_id", strip_path=True
    ),
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.USER, id_key="uid", credential_field="pass"
    ),
    EntityTypeDefinition(entity_type_id=CoreEntityType.FILE, id_key="fid"),
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.PATH_ALIAS,
        revision_key="revision_id",
        supports_changed=False,
    ),
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.PARAGRAPH,
        revision_key="revision_id",
        supports_changed=False,
    ),
    EntityTypeDefinition(entity_type_id=CoreEntityType.BLOCK_CONTENT, revision_key="revision_id"),
    EntityTypeDefinition(
        entity_type_id=CoreEntityType.MENU_LINK_CONTENT, revision_key="revision_id"
    ),
    EntityTypeDefinition(entity_type_id=CoreEntityType.COMMENT, id_key="cid"),
)


@dataclass(slots=True)
class EntityTypeRegistry:
    """Lookup table ``entity_type_id -> EntityTypeDefinition``."""

    _definitions: dict[str, EntityTypeDefinition] = field(
        default_factory=dict[str, EntityTypeDefinition]
    )

    @classmethod
    def with_defaults(
        cls, extra: Iterable[EntityTypeDefinition] = ()
    ) -> EntityTypeRegistry:
        registry = cls()
        for definition in (*DEFAULT_ENTITY_TYPES, *extra):
            registry.register(definition)
        return registry

    def register(self, definition: EntityTypeDefinition) -> None:
        self._definitions[str(definition.entity_type_id)] = definition

    def get(self, entity_type_id: str) -> EntityTypeDefinition:
        try:
            return self._definitions[entity_type_id]
        except KeyError:
            raise UnknownEntityTypeError(f"Unknown entity type: {entity_type_id}") from None

    def __contains__(self, entity_type_id: object) -> bool:
        return entity_type_id in self._definitions

    def __iter__(self) -> Iterator[EntityTypeDefinition]:
        return iter(self._definitions.values())
