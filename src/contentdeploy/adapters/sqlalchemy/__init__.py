"""SQLAlchemy adapter package for contentdeploy."""

from __future__ import annotations

from .mappings import (
    account_credential_table,
    content_entity_table,
    create_all_tables,
    import_watermark_table,
    mapper_registry,
    start_mappers,
)
from .repositories import SqlAlchemyEntityRepository, SqlAlchemyWatermarkStore
from .unit_of_work import (
    SqlAlchemyContentUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyContentUnitOfWork",
    "SqlAlchemyEntityRepository",
    "SqlAlchemyWatermarkStore",
    "StartupError",
    "account_credential_table",
    "content_entity_table",
    "create_all_tables",
    "import_watermark_table",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
