from __future__ import annotations

from typing import TYPE_CHECKING

from contentdeploy.app import build_engine, import_content
from contentdeploy.config import get_import_config
from contentdeploy.domain.importer import DecisionKind
from contentdeploy.domain.ports import ContentRepositories
from tests.helpers.content import FakeEntityRepository, FakeUnitOfWork, FakeWatermarkStore
from tests.helpers.snapshots import file_document, node_document, write_snapshot

if TYPE_CHECKING:
    from pathlib import Path

    from contentdeploy.domain.importer import ReconciliationEngine


def test_import_content_runs_configured_folder(
    content_engine: ReconciliationEngine, snapshot_dir: Path
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1", export_timestamp=50))
    config = get_import_config(snapshot_dir, incremental=True)

    result = import_content(config, engine=content_engine)

    assert result.success is True
    assert result.counters.created == 1
    assert result.watermark == 50


def test_build_engine_accepts_custom_unit_of_work(snapshot_dir: Path) -> None:
    repositories = ContentRepositories(
        entities=FakeEntityRepository(), watermarks=FakeWatermarkStore()
    )
    engine = build_engine(unit_of_work_factory=lambda: FakeUnitOfWork(repositories))
    write_snapshot(snapshot_dir, "file", "uuid-f", file_document("uuid-f"))

    result = import_content(get_import_config(snapshot_dir), engine=engine)

    assert result.context is not None
    assert result.context.decisions == [("uuid-f", DecisionKind.CREATE)]
    assert repositories.entities.exists_by_uuid("file", "uuid-f")
