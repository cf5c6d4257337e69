"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from contentdeploy.adapters.hal_json import HalJsonCodec, HalLinkTypeResolver
from contentdeploy.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyContentUnitOfWork,
    is_started,
    startup,
)
from contentdeploy.domain.importer import ImportOptions, ImportResult, ReconciliationEngine
from contentdeploy.domain.model import EntityTypeRegistry
from contentdeploy.domain.ports.unit_of_work import ContentUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Sequence

    from contentdeploy.config import ImportConfig
    from contentdeploy.domain.importer import BatchRunner
    from contentdeploy.domain.ports import PreSaveHook

UnitOfWorkFactory = Callable[[], ContentUnitOfWork]


log = getLogger(__name__)


def build_engine(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    entity_types: EntityTypeRegistry | None = None,
    pre_save_hooks: Sequence[PreSaveHook] = (),
) -> ReconciliationEngine:
    """Wire the reconciliation engine to the HAL+JSON and SQLAlchemy adapters."""

    registry = entity_types or EntityTypeRegistry.with_defaults()
    link_types = HalLinkTypeResolver(registry)
    if unit_of_work_factory is None and not is_started():
        startup()
    return ReconciliationEngine(
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyContentUnitOfWork,
        codec=HalJsonCodec(link_types, registry),
        link_types=link_types,
        entity_types=registry,
        pre_save_hooks=tuple(pre_save_hooks),
    )


def import_content(
    config: ImportConfig,
    *,
    engine: ReconciliationEngine | None = None,
    runner: BatchRunner | None = None,
) -> ImportResult:
    """Import the snapshots of ``config.source_dir`` using the configured adapters."""

    effective_engine = engine or build_engine()
    log.info(
        "Starting content import: folder=%s, force_override=%s, preserve_ids=%s, "
        "incremental=%s",
        config.source_dir,
        config.force_override,
        config.preserve_ids,
        config.incremental,
    )

    result = effective_engine.run(
        config.source_dir,
        ImportOptions(
            force_override=config.force_override,
            preserve_ids=config.preserve_ids,
            incremental=config.incremental,
            verbose=config.verbose,
        ),
        runner=runner,
    )

    log.info(
        f"Finished content import: total={result.total}, created={result.counters.created}, "
        f"updated={result.counters.updated}, skipped={result.counters.skipped}, "
        f"failed={result.counters.failed}"
    )
    return result
