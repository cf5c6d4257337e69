"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from contentdeploy.adapters.sqlalchemy.mappings import (
    account_credential_table,
    content_entity_table,
    import_watermark_table,
)
from contentdeploy.domain.importer.errors import PersistenceError
from contentdeploy.domain.model import ContentEntity

if TYPE_CHECKING:
    from typing import Any

    from sqlalchemy import Column
    from sqlalchemy.orm import Session

log = logging.getLogger(__name__)


class SqlAlchemyEntityRepository:
    """Live content records in the ``content_entity`` table.

    Storage owns ids and revisions: a record saved without an id gets the next
    free id of its type, and every save assigns a fresh revision id.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def exists_by_uuid(self, entity_type: str, uuid: str) -> bool:
        stmt = (
            select(content_entity_table.c.id)
            .where(content_entity_table.c.entity_type == entity_type)
            .where(content_entity_table.c.uuid == uuid)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def load_by_uuid(self, entity_type: str, uuid: str) -> ContentEntity | None:
        stmt = (
            select(ContentEntity)
            .where(content_entity_table.c.entity_type == entity_type)
            .where(content_entity_table.c.uuid == uuid)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def load_by_id(self, entity_type: str, entity_id: int) -> ContentEntity | None:
        return self.session.get(ContentEntity, (entity_type, entity_id))

    def save(self, entity: ContentEntity, *, is_new: bool) -> ContentEntity:
        try:
            stored = self._insert(entity) if is_new else self._replace(entity)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not save {entity.entity_type} {entity.uuid}: {exc}"
            ) from exc
        return stored

    def store_credential_hash(self, entity_type: str, entity_id: int, credential: str) -> None:
        try:
            result = self.session.execute(
                update(account_credential_table)
                .where(account_credential_table.c.entity_type == entity_type)
                .where(account_credential_table.c.entity_id == entity_id)
                .values(credential_hash=credential)
            )
            if not result.rowcount:  # pyright: ignore[reportAttributeAccessIssue]
                self.session.execute(
                    insert(account_credential_table).values(
                        entity_type=entity_type,
                        entity_id=entity_id,
                        credential_hash=credential,
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not store credential of {entity_type} {entity_id}: {exc}"
            ) from exc

    def credential_hash(self, entity_type: str, entity_id: int) -> str | None:
        stmt = (
            select(account_credential_table.c.credential_hash)
            .where(account_credential_table.c.entity_type == entity_type)
            .where(account_credential_table.c.entity_id == entity_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _insert(self, entity: ContentEntity) -> ContentEntity:
        if entity.id is None:
            entity.id = self._next_value(entity.entity_type, content_entity_table.c.id)
        entity.revision_id = self._next_value(
            entity.entity_type, content_entity_table.c.revision_id
        )
        self.session.add(entity)
        log.debug("Inserting %s %s (%s)", entity.entity_type, entity.id, entity.uuid)
        return entity

    def _replace(self, entity: ContentEntity) -> ContentEntity:
        if entity.id is None:
            raise PersistenceError(f"Cannot update {entity.entity_type} {entity.uuid} without id")
        existing = self.load_by_id(entity.entity_type, entity.id)
        if existing is None:
            raise PersistenceError(f"No stored {entity.entity_type} with id {entity.id}")

        existing.uuid = entity.uuid
        existing.bundle = entity.bundle
        existing.fields = entity.fields
        existing.references = entity.references
        existing.revision_id = self._next_value(
            entity.entity_type, content_entity_table.c.revision_id
        )
        log.debug("Updating %s %s (%s)", existing.entity_type, existing.id, existing.uuid)
        return existing

    def _next_value(self, entity_type: str, column: Column[Any]) -> int:
        stmt = select(func.coalesce(func.max(column), 0)).where(
            content_entity_table.c.entity_type == entity_type
        )
        return int(self.session.execute(stmt).scalar_one()) + 1


class SqlAlchemyWatermarkStore:
    """Newest applied export timestamp per source, in ``import_watermark``."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: str) -> int:
        stmt = select(import_watermark_table.c.timestamp).where(
            import_watermark_table.c.key == key
        )
        value = self.session.execute(stmt).scalar_one_or_none()
        return int(value) if value is not None else 0

    def set(self, key: str, timestamp: int) -> None:
        result = self.session.execute(
            update(import_watermark_table)
            .where(import_watermark_table.c.key == key)
            .values(timestamp=timestamp)
        )
        if not result.rowcount:  # pyright: ignore[reportAttributeAccessIssue]
            self.session.execute(
                insert(import_watermark_table).values(key=key, timestamp=timestamp)
            )
