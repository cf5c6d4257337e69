from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from contentdeploy.adapters.hal_json import HalJsonCodec, HalLinkTypeResolver
from contentdeploy.adapters.sqlalchemy import create_all_tables, start_mappers
from contentdeploy.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyContentUnitOfWork,
    shutdown,
    startup,
)
from contentdeploy.domain.importer import ReconciliationEngine
from contentdeploy.domain.model import EntityTypeRegistry

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine

    type UnitOfWorkFactory = Callable[[], SqlAlchemyContentUnitOfWork]


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    # one shared connection, so every session sees the same in-memory database
    engine = create_engine("sqlite+pysqlite://", poolclass=StaticPool, future=True)
    start_mappers()
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    with Session(sqlite_engine) as session:
        yield session


@pytest.fixture
def sqlite_unit_of_work(sqlite_engine: Engine) -> Iterator[UnitOfWorkFactory]:
    startup(engine=sqlite_engine, force=True)
    yield SqlAlchemyContentUnitOfWork
    shutdown()


@pytest.fixture
def entity_types() -> EntityTypeRegistry:
    return EntityTypeRegistry.with_defaults()


@pytest.fixture
def link_types(entity_types: EntityTypeRegistry) -> HalLinkTypeResolver:
    return HalLinkTypeResolver(entity_types)


@pytest.fixture
def codec(link_types: HalLinkTypeResolver, entity_types: EntityTypeRegistry) -> HalJsonCodec:
    return HalJsonCodec(link_types, entity_types)


@pytest.fixture
def content_engine(
    sqlite_unit_of_work: UnitOfWorkFactory,
    codec: HalJsonCodec,
    link_types: HalLinkTypeResolver,
    entity_types: EntityTypeRegistry,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        unit_of_work_factory=sqlite_unit_of_work,
        codec=codec,
        link_types=link_types,
        entity_types=entity_types,
    )


@pytest.fixture
def snapshot_dir(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    root.mkdir()
    return root
