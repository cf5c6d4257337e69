"""Reconciliation of a snapshot directory with the live content repository.

A run scans the source directory, partitions the snapshots into import sets,
orders them into a plan and hands the plan to a :class:`BatchRunner`. Each
file is classified, its references are repaired, and the resulting decision
is applied in a unit of work of its own. On success the newest export
timestamp seen is stored as the source's watermark for incremental runs.

Two runs must not import the same source directory at the same time: the
watermark is only ever raised, but nothing locks it between runs.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from contentdeploy.domain.model import CoreEntityType, EntityTypeRegistry

from .batch import BatchRunner
from .classify import ChangeClassifier
from .context import ImportCounters, RunContext, watermark_key_for
from .decisions import (
    Create,
    SkipIdCollision,
    SkipIncrementalAlreadyApplied,
    SkipUnchanged,
    Update,
)
from .index import SnapshotIndex
from .payload import prepare_payload
from .plan import ImportSet, build_plan
from .references import ReferenceResolver, localize_alias_path

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from typing import Any

    from contentdeploy.domain.model import ContentEntity, EntityTypeDefinition
    from contentdeploy.domain.ports import (
        ContentUnitOfWork,
        EntityRepository,
        LinkTypeResolver,
        PreSaveHook,
        SnapshotCodec,
    )

    from .decisions import Skip
    from .index import SnapshotDescriptor
    from .payload import SnapshotPayload
    from .plan import BatchItem

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportOptions:
    force_override: bool = False
    preserve_ids: bool = False
    incremental: bool = False
    verbose: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportResult:
    """Summary of one import run."""

    success: bool
    total: int
    counters: ImportCounters
    max_export_timestamp: int = 0
    watermark: int = 0
    errors: tuple[str, ...] = ()
    context: RunContext | None = None


@dataclass(slots=True)
class ReconciliationEngine:
    """Create missing entities and update changed ones from snapshot files."""

    unit_of_work_factory: Callable[[], ContentUnitOfWork]
    codec: SnapshotCodec
    link_types: LinkTypeResolver
    entity_types: EntityTypeRegistry = field(default_factory=EntityTypeRegistry.with_defaults)
    index: SnapshotIndex = field(default_factory=SnapshotIndex)
    pre_save_hooks: Sequence[PreSaveHook] = ()
    elevated: Callable[[], AbstractContextManager[Any]] = nullcontext

    def prepare(self, source_dir: Path, *, force_override: bool = False) -> ImportSet:
        """Scan ``source_dir`` and partition its snapshots into import sets."""

        self.link_types.reset_relation_cache()
        descriptors = self.index.scan(source_dir, force_override=force_override)
        return ImportSet.from_descriptors(descriptors)

    def start(self, source_dir: Path, options: ImportOptions) -> RunContext:
        """Create the context of a new run, reading the stored watermark."""

        key = watermark_key_for(source_dir)
        with self.unit_of_work_factory() as uow:
            previous = uow.repositories.watermarks.get(key)
        return RunContext(
            watermark_key=key,
            previous_watermark=previous,
            verbose=options.verbose,
            preserve_ids=options.preserve_ids,
            incremental=options.incremental,
        )

    def run(
        self,
        source_dir: Path,
        options: ImportOptions | None = None,
        *,
        runner: BatchRunner | None = None,
    ) -> ImportResult:
        """Import every snapshot below ``source_dir``."""

        effective = options or ImportOptions()
        source = _normalize_source(source_dir)
        items = build_plan(self.prepare(source, force_override=effective.force_override))
        if not items:
            log.info("Nothing to import.")
            return ImportResult(success=True, total=0, counters=ImportCounters())

        context = self.start(source, effective)
        return self._execute(items, context, runner or BatchRunner(), start=0)

    def resume(
        self,
        source_dir: Path,
        blob: dict[str, Any],
        *,
        start: int,
        force_override: bool = False,
        runner: BatchRunner | None = None,
    ) -> ImportResult:
        """Continue an interrupted run at plan position ``start``.

        ``blob`` is the serialised context handed to the checkpoint callback.
        The plan is rebuilt from the same directory, so the directory must not
        change between the two calls.
        """

        source = _normalize_source(source_dir)
        items = build_plan(self.prepare(source, force_override=force_override))
        context = RunContext.from_blob(blob)
        return self._execute(items, context, runner or BatchRunner(), start=start)

    def process_file(self, item: BatchItem, context: RunContext) -> str | None:
        """Classify one snapshot and apply the decision, returning a progress message."""

        descriptor = item.descriptor
        prefix = context.progress_prefix(item.current, item.total)

        if item.correction and context.consume_skip_correction(descriptor.uuid):
            if context.verbose:
                return f"{prefix}, skipped correction of {descriptor.entity_type_id}"
            return None

        definition = self.entity_types.get(descriptor.entity_type_id)
        with self.elevated(), self.unit_of_work_factory() as uow:
            entities = uow.repositories.entities
            payload = self._load_payload(descriptor, definition)
            if descriptor.entity_type_id == CoreEntityType.PATH_ALIAS:
                source_path = None
                localize_alias_path(
                    payload, imported_uuid_for=context.imported_uuid_for, entities=entities
                )
            else:
                source_path = _source_path(descriptor.entity_type_id, payload.entity_id)

            classifier = ChangeClassifier(entities=entities, codec=self.codec)
            decision = classifier.classify(
                descriptor,
                payload,
                context,
                definition=definition,
                correction=item.correction,
            )
            if not isinstance(decision, Create | Update):
                message = _skip_message(prefix, descriptor, decision, verbose=context.verbose)
                context.record_skip(
                    descriptor.uuid,
                    decision.kind,
                    payload.export_timestamp,
                    correction=item.correction,
                    source_path=source_path,
                )
                return message

            stored = self._apply(decision, payload, definition, entities)
            uow.commit()

        context.record_applied(
            descriptor.uuid,
            decision.kind,
            payload.export_timestamp,
            # revision pointers go stale when their target is saved again later in the run
            correction_required=stored.has_unresolved_references()
            or stored.has_revision_pointers(),
            correction=item.correction,
            source_path=source_path,
        )
        if not context.verbose:
            return None
        operation = "created" if isinstance(decision, Create) else "updated"
        return f"{prefix}, {operation} {stored.entity_type} {stored.id}"

    def finish(self, success: bool, context: RunContext) -> None:  # noqa: FBT001
        """Store the new watermark and report the outcome of the run."""

        counters = context.counters
        if not success:
            log.error(
                "An error occurred during the import: created=%s, updated=%s, skipped=%s, "
                "failed=%s",
                counters.created,
                counters.updated,
                counters.skipped,
                counters.failed,
            )
            return

        with self.unit_of_work_factory() as uow:
            watermarks = uow.repositories.watermarks
            if context.max_export_timestamp > watermarks.get(context.watermark_key):
                watermarks.set(context.watermark_key, context.max_export_timestamp)
                uow.commit()

        log.info(
            "Import completed successfully: created=%s, updated=%s, skipped=%s, failed=%s",
            counters.created,
            counters.updated,
            counters.skipped,
            counters.failed,
        )

    def _execute(
        self,
        items: Sequence[BatchItem],
        context: RunContext,
        runner: BatchRunner,
        *,
        start: int,
    ) -> ImportResult:
        success = runner.run(
            items,
            operation=self.process_file,
            finished=self.finish,
            context=context,
            start=start,
        )
        return ImportResult(
            success=success,
            total=len(items),
            counters=context.counters,
            max_export_timestamp=context.max_export_timestamp,
            watermark=_stored_watermark(context, success=success),
            errors=tuple(context.errors),
            context=context,
        )

    def _load_payload(
        self, descriptor: SnapshotDescriptor, definition: EntityTypeDefinition
    ) -> SnapshotPayload:
        document = self.codec.decode(descriptor.source.read_bytes())
        return prepare_payload(document, descriptor, definition)

    def _apply(
        self,
        decision: Create | Update,
        payload: SnapshotPayload,
        definition: EntityTypeDefinition,
        entities: EntityRepository,
    ) -> ContentEntity:
        if isinstance(decision, Update):
            payload.entity_id = decision.existing.id
        elif not decision.preserve_id:
            payload.entity_id = None

        ReferenceResolver(entities=entities, link_types=self.link_types).resolve(payload)
        record = self.codec.denormalize(payload, definition, entities=entities)
        for hook in self.pre_save_hooks:
            hook(record, payload)
        stored = entities.save(record, is_new=isinstance(decision, Create))

        if definition.credential_field and stored.id is not None:
            # the save path does not accept pre-hashed credentials
            credential = payload.field_value(definition.credential_field)
            if credential:
                entities.store_credential_hash(stored.entity_type, stored.id, str(credential))
        return stored


def _stored_watermark(context: RunContext, *, success: bool) -> int:
    if not success:
        return context.previous_watermark
    return max(context.previous_watermark, context.max_export_timestamp)


def _normalize_source(source_dir: Path) -> Path:
    return Path(source_dir).expanduser().resolve()


def _source_path(entity_type: str, entity_id: int | None) -> str | None:
    return f"/{entity_type}/{entity_id}" if entity_id is not None else None


def _skip_message(
    prefix: str,
    descriptor: SnapshotDescriptor,
    decision: Skip,
    *,
    verbose: bool,
) -> str | None:
    entity_type = descriptor.entity_type_id
    if isinstance(decision, SkipIdCollision):
        return f"{prefix}, skipped {entity_type} {decision.entity_id}, ID already exists in database"
    if not verbose:
        return None
    if isinstance(decision, SkipIncrementalAlreadyApplied):
        return f"{prefix}, skipped {entity_type} {descriptor.uuid}, file is already imported"
    if isinstance(decision, SkipUnchanged) and decision.file_changed is not None:
        return (
            f"{prefix}, skipped {entity_type} {decision.entity_id}, "
            f"file ({_format_time(decision.file_changed)}) is not newer than database "
            f"({_format_time(decision.live_changed or 0)})"
        )
    return f"{prefix}, skipped {entity_type} {decision.entity_id}, no changes compared to database"


def _format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, UTC).strftime("%Y-%m-%d %H:%M:%S")
