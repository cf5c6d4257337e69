"""Change detection: decide what to do with one snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .compare import loose_diff
from .decisions import (
    Create,
    Decision,
    SkipIdCollision,
    SkipIncrementalAlreadyApplied,
    SkipNewerInDb,
    SkipUnchanged,
    Update,
)
from .references import resolve_link_domain

if TYPE_CHECKING:
    from contentdeploy.domain.model import ContentEntity, EntityTypeDefinition
    from contentdeploy.domain.ports import EntityRepository, SnapshotCodec

    from .context import RunContext
    from .index import SnapshotDescriptor
    from .payload import SnapshotPayload


@dataclass(slots=True)
class ChangeClassifier:
    """Classify a snapshot as create, update or one of the skip outcomes."""

    entities: EntityRepository
    codec: SnapshotCodec

    def classify(
        self,
        descriptor: SnapshotDescriptor,
        payload: SnapshotPayload,
        context: RunContext,
        *,
        definition: EntityTypeDefinition,
        correction: bool = False,
    ) -> Decision:
        entity_type = descriptor.entity_type_id
        export_timestamp = payload.export_timestamp

        if self.entities.exists_by_uuid(entity_type, descriptor.uuid):
            # checked before the entity is loaded; wins over change detection
            if (
                context.incremental
                and export_timestamp
                and export_timestamp <= context.previous_watermark
            ):
                return SkipIncrementalAlreadyApplied(
                    export_timestamp=export_timestamp,
                    watermark=context.previous_watermark,
                )

            existing = self.entities.load_by_uuid(entity_type, descriptor.uuid)
            if existing is not None:
                if not descriptor.force_override:
                    skip = self._unchanged(existing, payload, definition, correction=correction)
                    if skip is not None:
                        return skip
                return Update(existing=existing)

        if not context.preserve_ids:
            return Create(preserve_id=False)

        literal_id = payload.entity_id
        if literal_id is not None and self.entities.load_by_id(entity_type, literal_id):
            return SkipIdCollision(entity_id=literal_id)
        return Create(preserve_id=True)

    def _unchanged(
        self,
        existing: ContentEntity,
        payload: SnapshotPayload,
        definition: EntityTypeDefinition,
        *,
        correction: bool,
    ) -> SkipUnchanged | None:
        if definition.supports_changed:
            file_changed = payload.changed_time_across_translations()
            if file_changed is None:
                # exports from before the type tracked changes
                return None
            live_changed = existing.changed_time_across_translations() or 0
            if file_changed > live_changed or correction:
                return None
            skip_cls = SkipNewerInDb if file_changed < live_changed else SkipUnchanged
            return skip_cls(
                entity_id=existing.id,
                file_changed=file_changed,
                live_changed=live_changed,
            )

        link_domain = resolve_link_domain(payload)
        live_document = self.codec.decode(self.codec.encode(existing, link_domain=link_domain))
        live_document.get("_links", {}).pop("self", None)

        snapshot = payload.to_document(include_self_link=False)
        snapshot[payload.id_field] = [{"value": existing.id}]
        if loose_diff(snapshot, live_document):
            return None
        return SkipUnchanged(entity_id=existing.id)
