from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import pytest

from contentdeploy.adapters.sqlalchemy import SqlAlchemyEntityRepository
from contentdeploy.domain.importer import (
    BatchRunner,
    DecisionKind,
    ImportOptions,
    SnapshotSourceError,
    watermark_key_for,
)
from tests.helpers.snapshots import (
    file_document,
    node_document,
    path_alias_document,
    reference_stub,
    user_document,
    write_snapshot,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from contentdeploy.adapters.sqlalchemy import SqlAlchemyContentUnitOfWork
    from contentdeploy.domain.importer import ImportResult, ReconciliationEngine
    from contentdeploy.domain.model import ContentEntity, EntityReference

    type UnitOfWorkFactory = Callable[[], SqlAlchemyContentUnitOfWork]


def _load(uow_factory: UnitOfWorkFactory, entity_type: str, uuid: str) -> ContentEntity:
    with uow_factory() as uow:
        entity = uow.repositories.entities.load_by_uuid(entity_type, uuid)
    assert entity is not None
    return entity


def _watermark(uow_factory: UnitOfWorkFactory, source: Path) -> int:
    with uow_factory() as uow:
        return uow.repositories.watermarks.get(watermark_key_for(source.resolve()))


def _kinds(result: ImportResult) -> list[tuple[str, DecisionKind]]:
    assert result.context is not None
    return result.context.decisions


def _single_reference(entity: ContentEntity) -> EntityReference:
    (reference,) = entity.references
    return reference


def test_new_node_is_created_with_generated_id(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1", nid=99))

    result = content_engine.run(snapshot_dir)

    assert result.success is True
    assert result.total == 2
    assert result.counters.created == 1
    assert _kinds(result) == [("uuid-1", DecisionKind.CREATE)]
    assert result.context is not None
    assert "uuid-1" not in result.context.skip_correction

    stored = _load(sqlite_unit_of_work, "node", "uuid-1")
    assert stored.id == 1
    assert stored.revision_id == 1
    assert stored.bundle == "article"
    assert stored.fields["title"] == [{"value": "Example"}]
    assert "nid" not in stored.fields
    assert "path" not in stored.fields


def test_older_snapshot_is_not_written(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(
        snapshot_dir, "node", "uuid-1", node_document("uuid-1", title="Current", changed=2_000)
    )
    content_engine.run(snapshot_dir)
    before = _load(sqlite_unit_of_work, "node", "uuid-1")

    write_snapshot(
        snapshot_dir, "node", "uuid-1", node_document("uuid-1", title="Stale", changed=1_000)
    )
    result = content_engine.run(snapshot_dir)

    assert _kinds(result) == [("uuid-1", DecisionKind.SKIP_NEWER_IN_DB)]
    assert result.counters.updated == 0
    after = _load(sqlite_unit_of_work, "node", "uuid-1")
    assert after.revision_id == before.revision_id
    assert after.fields["title"] == [{"value": "Current"}]


def test_newer_snapshot_updates_in_place(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1", changed=1_000))
    content_engine.run(snapshot_dir)

    write_snapshot(
        snapshot_dir, "node", "uuid-1", node_document("uuid-1", title="Edited", changed=2_000)
    )
    result = content_engine.run(snapshot_dir)

    assert _kinds(result) == [("uuid-1", DecisionKind.UPDATE)]
    stored = _load(sqlite_unit_of_work, "node", "uuid-1")
    assert stored.id == 1
    assert stored.revision_id == 2
    assert stored.fields["title"] == [{"value": "Edited"}]


def test_path_alias_points_at_entity_created_in_same_run(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-n", node_document("uuid-n", nid=77))
    write_snapshot(
        snapshot_dir,
        "path_alias",
        "uuid-2",
        path_alias_document(
            "uuid-2",
            path="/node/77",
            alias="/about",
            target=reference_stub("node", "uuid-n", bundle="article"),
        ),
    )

    result = content_engine.run(snapshot_dir)

    assert result.counters.created == 2
    node = _load(sqlite_unit_of_work, "node", "uuid-n")
    alias = _load(sqlite_unit_of_work, "path_alias", "uuid-2")
    assert alias.fields["path"] == [{"value": f"/node/{node.id}"}]
    assert alias.fields["alias"] == [{"value": "/about"}]
    assert _single_reference(alias).target_id == node.id


def test_circular_references_are_resolved_by_correction_pass(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(
        snapshot_dir,
        "node",
        "uuid-a",
        node_document(
            "uuid-a",
            nid=1,
            embedded={"field_related": [reference_stub("node", "uuid-b", bundle="article", revision=500)]},
        ),
    )
    write_snapshot(
        snapshot_dir,
        "node",
        "uuid-b",
        node_document(
            "uuid-b",
            nid=2,
            embedded={"field_related": [reference_stub("node", "uuid-a", bundle="article", revision=600)]},
        ),
    )

    result = content_engine.run(snapshot_dir)

    assert _kinds(result) == [
        ("uuid-a", DecisionKind.CREATE),
        ("uuid-b", DecisionKind.CREATE),
        ("uuid-a", DecisionKind.UPDATE),
        ("uuid-b", DecisionKind.UPDATE),
    ]
    first = _load(sqlite_unit_of_work, "node", "uuid-a")
    second = _load(sqlite_unit_of_work, "node", "uuid-b")
    to_second = _single_reference(first)
    to_first = _single_reference(second)
    assert to_second.target_id == second.id
    assert to_second.target_revision_id == second.revision_id
    assert to_first.target_id == first.id
    assert to_first.target_revision_id == first.revision_id
    assert not first.has_unresolved_references()


def test_path_alias_without_reference_stub_follows_source_path(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-n", node_document("uuid-n", nid=77))
    write_snapshot(
        snapshot_dir,
        "path_alias",
        "uuid-2",
        path_alias_document("uuid-2", path="/node/77", alias="/about"),
    )

    first = content_engine.run(snapshot_dir)
    second = content_engine.run(snapshot_dir)

    assert first.counters.created == 2
    node = _load(sqlite_unit_of_work, "node", "uuid-n")
    alias = _load(sqlite_unit_of_work, "path_alias", "uuid-2")
    assert node.id == 1
    assert alias.fields["path"] == [{"value": "/node/1"}]
    assert alias.references == []
    assert second.counters.updated == 0
    assert ("uuid-2", DecisionKind.SKIP_UNCHANGED) in _kinds(second)


def test_reference_follows_target_updated_later_in_same_run(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-b", node_document("uuid-b", nid=2, changed=1_000))
    content_engine.run(snapshot_dir)

    write_snapshot(
        snapshot_dir,
        "node",
        "uuid-a",
        node_document(
            "uuid-a",
            nid=1,
            embedded={"field_related": [reference_stub("node", "uuid-b", bundle="article", revision=500)]},
        ),
    )
    write_snapshot(
        snapshot_dir, "node", "uuid-b", node_document("uuid-b", nid=2, title="Edited", changed=2_000)
    )
    result = content_engine.run(snapshot_dir)

    assert _kinds(result) == [
        ("uuid-a", DecisionKind.CREATE),
        ("uuid-b", DecisionKind.UPDATE),
        ("uuid-a", DecisionKind.UPDATE),
    ]
    target = _load(sqlite_unit_of_work, "node", "uuid-b")
    reference = _single_reference(_load(sqlite_unit_of_work, "node", "uuid-a"))
    assert reference.target_id == target.id
    assert reference.target_revision_id == target.revision_id


def test_second_run_without_changes_skips_everything(
    content_engine: ReconciliationEngine, snapshot_dir: Path
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-n", node_document("uuid-n"))
    write_snapshot(snapshot_dir, "file", "uuid-f", file_document("uuid-f"))
    write_snapshot(snapshot_dir, "path_alias", "uuid-p", path_alias_document("uuid-p"))
    content_engine.run(snapshot_dir)

    result = content_engine.run(snapshot_dir)

    assert {kind for _, kind in _kinds(result)} == {DecisionKind.SKIP_UNCHANGED}
    assert len(_kinds(result)) == 3
    assert result.counters.created == 0
    assert result.counters.updated == 0


def test_incremental_run_skips_already_applied_exports(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    incremental = ImportOptions(incremental=True)
    write_snapshot(
        snapshot_dir,
        "node",
        "uuid-1",
        node_document("uuid-1", changed=1_000, export_timestamp=1_000),
    )
    first = content_engine.run(snapshot_dir, incremental)
    assert first.watermark == 1_000

    write_snapshot(
        snapshot_dir,
        "node",
        "uuid-1",
        node_document("uuid-1", title="Edited", changed=5_000, export_timestamp=1_000),
    )
    second = content_engine.run(snapshot_dir, incremental)

    assert _kinds(second) == [("uuid-1", DecisionKind.SKIP_INCREMENTAL)]
    assert _load(sqlite_unit_of_work, "node", "uuid-1").fields["title"] == [{"value": "Example"}]

    write_snapshot(
        snapshot_dir,
        "node",
        "uuid-1",
        node_document("uuid-1", title="Edited", changed=5_000, export_timestamp=2_000),
    )
    third = content_engine.run(snapshot_dir, incremental)

    assert _kinds(third) == [("uuid-1", DecisionKind.UPDATE)]
    assert _load(sqlite_unit_of_work, "node", "uuid-1").fields["title"] == [{"value": "Edited"}]
    assert _watermark(sqlite_unit_of_work, snapshot_dir) == 2_000


def test_watermark_never_decreases(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.watermarks.set(watermark_key_for(snapshot_dir.resolve()), 5_000)
        uow.commit()
    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1", export_timestamp=1_000))

    result = content_engine.run(snapshot_dir)

    assert result.success is True
    assert result.watermark == 5_000
    assert _watermark(sqlite_unit_of_work, snapshot_dir) == 5_000


def test_failed_run_leaves_watermark_alone(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    def interrupt(position: int, blob: dict[str, Any]) -> None:
        raise RuntimeError("driver went away")

    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1", export_timestamp=1_000))

    result = content_engine.run(snapshot_dir, runner=BatchRunner(checkpoint=interrupt))

    assert result.success is False
    assert _watermark(sqlite_unit_of_work, snapshot_dir) == 0


def test_interrupted_run_can_be_resumed(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    checkpoints: list[tuple[int, dict[str, Any]]] = []

    def suspend(position: int, blob: dict[str, Any]) -> None:
        checkpoints.append((position, blob))
        raise RuntimeError("suspended")

    write_snapshot(snapshot_dir, "node", "uuid-a", node_document("uuid-a", export_timestamp=100))
    write_snapshot(snapshot_dir, "node", "uuid-b", node_document("uuid-b", export_timestamp=200))

    first = content_engine.run(snapshot_dir, runner=BatchRunner(checkpoint=suspend))
    assert first.success is False
    assert first.counters.created == 1

    ((position, blob),) = checkpoints
    resumed = content_engine.resume(snapshot_dir, blob, start=position)

    assert resumed.success is True
    assert resumed.counters.created == 2
    assert resumed.watermark == 200
    assert _watermark(sqlite_unit_of_work, snapshot_dir) == 200
    assert _load(sqlite_unit_of_work, "node", "uuid-b").id == 2


def test_account_credential_is_written_outside_the_record(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(
        snapshot_dir, "user", "uuid-u", user_document("uuid-u", credential="$2y$10$hashed")
    )

    content_engine.run(snapshot_dir)

    user = _load(sqlite_unit_of_work, "user", "uuid-u")
    assert "pass" not in user.fields
    assert user.id is not None
    with sqlite_unit_of_work() as uow:
        entities = uow.repositories.entities
        assert isinstance(entities, SqlAlchemyEntityRepository)
        assert entities.credential_hash("user", user.id) == "$2y$10$hashed"


def test_broken_file_is_reported_and_others_continue(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    write_snapshot(snapshot_dir, "file", "bad", "{not json")
    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1"))

    result = content_engine.run(snapshot_dir)

    assert result.success is True
    assert result.counters.failed == 1
    assert result.counters.created == 1
    (error,) = result.errors
    assert "error on importing file bad" in error
    assert _load(sqlite_unit_of_work, "node", "uuid-1").id == 1


def test_unknown_entity_type_fails_per_file(
    content_engine: ReconciliationEngine, snapshot_dir: Path
) -> None:
    write_snapshot(snapshot_dir, "widget", "uuid-w", {"uuid": [{"value": "uuid-w"}]})

    result = content_engine.run(snapshot_dir)

    assert result.success is True
    assert result.counters.failed == 2
    assert "Unknown entity type: widget" in result.errors[0]


def test_preserved_id_collision_is_skipped(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    preserve = ImportOptions(preserve_ids=True)
    write_snapshot(snapshot_dir, "node", "uuid-x", node_document("uuid-x", nid=42))
    content_engine.run(snapshot_dir, preserve)
    assert _load(sqlite_unit_of_work, "node", "uuid-x").id == 42

    write_snapshot(snapshot_dir, "node", "uuid-y", node_document("uuid-y", nid=42))
    result = content_engine.run(snapshot_dir, preserve)

    assert ("uuid-y", DecisionKind.SKIP_ID_COLLISION) in _kinds(result)
    with sqlite_unit_of_work() as uow:
        assert not uow.repositories.entities.exists_by_uuid("node", "uuid-y")


def test_verbose_run_reports_skips(
    content_engine: ReconciliationEngine,
    snapshot_dir: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1", changed=1_000))
    content_engine.run(snapshot_dir)
    caplog.set_level(logging.INFO)

    content_engine.run(snapshot_dir, ImportOptions(verbose=True))

    messages = [record.getMessage() for record in caplog.records]
    assert any("is not newer than database" in message for message in messages)
    assert any("skipped correction of node" in message for message in messages)


def test_unformattable_skip_message_counts_only_as_failure(
    content_engine: ReconciliationEngine, snapshot_dir: Path
) -> None:
    # a millisecond value lies beyond the last representable year
    changed = 1_700_000_000_000
    write_snapshot(snapshot_dir, "node", "uuid-1", node_document("uuid-1", changed=changed))
    content_engine.run(snapshot_dir)

    result = content_engine.run(snapshot_dir, ImportOptions(verbose=True))

    assert result.counters.failed == 1
    assert result.counters.skipped == 0
    assert _kinds(result) == [("uuid-1", DecisionKind.UPDATE)]


def test_empty_directory_has_nothing_to_import(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)

    result = content_engine.run(snapshot_dir)

    assert result.success is True
    assert result.total == 0
    assert "Nothing to import." in caplog.messages
    assert _watermark(sqlite_unit_of_work, snapshot_dir) == 0


def test_missing_directory_is_fatal(content_engine: ReconciliationEngine, tmp_path: Path) -> None:
    with pytest.raises(SnapshotSourceError):
        content_engine.run(tmp_path / "missing")


def test_hooks_and_elevation_wrap_each_save(
    content_engine: ReconciliationEngine,
    sqlite_unit_of_work: UnitOfWorkFactory,
    snapshot_dir: Path,
) -> None:
    entered: list[str] = []

    @contextmanager
    def elevated() -> Iterator[None]:
        entered.append("enter")
        yield

    def unpublish(entity: ContentEntity, payload: object) -> None:
        entity.fields["status"] = [{"value": False}]

    engine = dataclasses.replace(content_engine, elevated=elevated, pre_save_hooks=(unpublish,))
    write_snapshot(snapshot_dir, "file", "uuid-f", file_document("uuid-f"))

    engine.run(snapshot_dir)

    assert entered == ["enter"]
    assert _load(sqlite_unit_of_work, "file", "uuid-f").fields["status"] == [{"value": False}]
