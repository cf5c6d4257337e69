"""SQLAlchemy mapping metadata for live content records."""

from __future__ import annotations

import json
import logging
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Column,
    Dialect,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)

from contentdeploy.domain.model import ContentEntity, EntityReference

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from contentdeploy.domain.model import FieldValues

log = logging.getLogger(__name__)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class FieldValuesType(TypeDecorator["FieldValues"]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: FieldValues | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(value, sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> FieldValues:
        _ = dialect
        if value is None:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        return cast("FieldValues", loaded)


class ReferenceListType(TypeDecorator[list[EntityReference]]):
    impl = Text
    cache_ok = True

    def process_bind_param(
        self, value: list[EntityReference] | None, dialect: Dialect
    ) -> str | None:
        _ = dialect
        if value is None:
            return None
        payload = [
            {
                "relation": reference.relation,
                "target_type": reference.target_type,
                "target_uuid": reference.target_uuid,
                "target_link": reference.target_link,
                "target_id": reference.target_id,
                "target_revision_id": reference.target_revision_id,
                "extra": reference.extra,
            }
            for reference in value
        ]
        return json.dumps(payload)

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[EntityReference]:
        _ = dialect
        if value is None:
            return []
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return []
        items = cast("list[dict[str, Any]]", loaded)
        return [EntityReference(**item) for item in items]


content_entity_table = Table(
    "content_entity",
    mapper_registry.metadata,
    Column("entity_type", String, primary_key=True),
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("uuid", String, nullable=False),
    Column("revision_id", Integer),
    Column("bundle", String),
    Column("fields", FieldValuesType, nullable=False, default=dict),
    Column("entity_references", ReferenceListType, nullable=False, default=list),
    UniqueConstraint("entity_type", "uuid"),
)

import_watermark_table = Table(
    "import_watermark",
    mapper_registry.metadata,
    Column("key", String, primary_key=True),
    Column("timestamp", Integer, nullable=False),
)

account_credential_table = Table(
    "account_credential",
    mapper_registry.metadata,
    Column("entity_type", String, primary_key=True),
    Column("entity_id", Integer, primary_key=True, autoincrement=False),
    Column("credential_hash", String, nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Map ``ContentEntity`` onto ``content_entity`` (idempotent)."""

    log.debug("Mapping content entities")

    mapper_registry.map_imperatively(
        ContentEntity,
        content_entity_table,
        properties={"references": content_entity_table.c.entity_references},
    )
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create the content, watermark and credential tables if missing."""

    log.debug("Ensuring content store schema on %s", engine.url)
    mapper_registry.metadata.create_all(engine)
