"""Ports for the content repository and the import watermark store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contentdeploy.domain.model import ContentEntity


@runtime_checkable
class EntityRepository(Protocol):
    """Persistence contract for live content records."""

    def exists_by_uuid(self, entity_type: str, uuid: str) -> bool: ...

    def load_by_uuid(self, entity_type: str, uuid: str) -> ContentEntity | None: ...

    def load_by_id(self, entity_type: str, entity_id: int) -> ContentEntity | None: ...

    def save(self, entity: ContentEntity, *, is_new: bool) -> ContentEntity:
        """Persist ``entity`` and return the stored record.

        ``is_new`` forces an insert (keeping a literal id when one is set);
        otherwise the record replaces the stored one with the same id.
        """
        ...

    def store_credential_hash(self, entity_type: str, entity_id: int, credential: str) -> None:
        """Write a pre-hashed credential directly, bypassing :meth:`save`."""
        ...


@runtime_checkable
class WatermarkStore(Protocol):
    """Key/value store for the newest export timestamp applied per source."""

    def get(self, key: str) -> int:
        """Return the stored timestamp for ``key`` (``0`` when unset)."""
        ...

    def set(self, key: str, timestamp: int) -> None: ...
