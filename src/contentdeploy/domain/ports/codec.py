"""Ports for the snapshot serialization format and link metadata."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contentdeploy.domain.importer.payload import SnapshotPayload
    from contentdeploy.domain.model import ContentEntity, EntityTypeDefinition
    from contentdeploy.domain.ports.persistence import EntityRepository


@runtime_checkable
class LinkTypeResolver(Protocol):
    """Maps type links found in snapshots to entity type ids."""

    def resolve_type_from_url(self, url: str) -> str | None: ...

    def invalidate_type_cache(self) -> None: ...

    def reset_relation_cache(self) -> None: ...


@runtime_checkable
class SnapshotCodec(Protocol):
    """Decode raw snapshots and turn payloads into live records (and back)."""

    def decode(self, raw: bytes) -> dict[str, Any]:
        """Return the structured document held in ``raw``.

        Raises ``DecodeError`` for malformed input.
        """
        ...

    def encode(self, entity: ContentEntity, *, link_domain: str) -> bytes:
        """Serialise a live record the way snapshots are written."""
        ...

    def denormalize(
        self,
        payload: SnapshotPayload,
        definition: EntityTypeDefinition,
        *,
        entities: EntityRepository,
    ) -> ContentEntity:
        """Build a live record from ``payload``, resolving references locally."""
        ...


class PreSaveHook(Protocol):
    """Extension point called with each record right before it is persisted."""

    def __call__(self, entity: ContentEntity, payload: SnapshotPayload) -> None: ...
