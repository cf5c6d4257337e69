"""SQLAlchemy-backed unit of work for content imports.

The adapter owns one engine per process. :func:`startup` binds it (creating
the schema on first use) and every :class:`SqlAlchemyContentUnitOfWork`
opens a fresh session from it, so each imported file commits or rolls back
on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from contentdeploy.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from contentdeploy.adapters.sqlalchemy.repositories import (
    SqlAlchemyEntityRepository,
    SqlAlchemyWatermarkStore,
)
from contentdeploy.config.storage import DatabaseConfig, get_database_config
from contentdeploy.domain.ports.unit_of_work import ContentRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine
    from sqlalchemy.engine.interfaces import DBAPIConnection
    from sqlalchemy.pool import ConnectionPoolEntry

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the adapter is used before, or configured twice without, startup."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = field(default=None, repr=False)

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.sessions = sessionmaker(bind=engine, expire_on_commit=False) if engine else None

    def open_session(self) -> Session:
        if self.sessions is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call contentdeploy.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        return self.sessions()


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to ``engine`` (or a new engine for the configured database)."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if engine is None:
        config = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
        engine = _create_engine(config.uri, echo=config.echo)
    start_mappers()
    create_all_tables(engine)
    _STATE.bind(engine)
    log.debug("Content store bound to %s", engine.url)


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.bind(None)


def _create_engine(uri: str, *, echo: bool) -> Engine:
    engine = create_engine(uri, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _sqlite_busy_timeout)
    return engine


def _sqlite_busy_timeout(
    dbapi_connection: DBAPIConnection, _record: ConnectionPoolEntry
) -> None:
    # a second reader (e.g. a status check) must not fail the running import
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA busy_timeout = 5000")
    cursor.close()


class SqlAlchemyContentUnitOfWork:
    """One session per imported file.

    Work that is not committed before the block exits is rolled back, both on
    error and on a plain exit (e.g. a skipped file).
    """

    def __init__(self) -> None:
        if _STATE.engine is None:
            raise StartupError("SQLAlchemy adapter not initialised; call startup() first")
        self._session: Session | None = None
        self._repositories: ContentRepositories | None = None

    def __enter__(self) -> SqlAlchemyContentUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = _STATE.open_session()
        self._repositories = ContentRepositories(
            entities=SqlAlchemyEntityRepository(self._session),
            watermarks=SqlAlchemyWatermarkStore(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if session.in_transaction():
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @property
    def repositories(self) -> ContentRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from contentdeploy.domain.ports.unit_of_work import ContentUnitOfWork

    _uow_check: ContentUnitOfWork = SqlAlchemyContentUnitOfWork()
