"""Import of exported content snapshots into the local content repository."""

from __future__ import annotations

from .batch import BatchProgress, BatchRunner, CheckpointCallback, ProgressCallback
from .classify import ChangeClassifier
from .compare import loose_diff, loose_equal
from .context import ImportCounters, RunContext, watermark_key_for
from .decisions import (
    Create,
    Decision,
    DecisionKind,
    Skip,
    SkipIdCollision,
    SkipIncrementalAlreadyApplied,
    SkipNewerInDb,
    SkipUnchanged,
    Update,
)
from .engine import ImportOptions, ImportResult, ReconciliationEngine
from .errors import (
    ContentImportError,
    DecodeError,
    PersistenceError,
    SnapshotSourceError,
    UnknownEntityTypeError,
)
from .index import SnapshotDescriptor, SnapshotIndex
from .payload import EmbeddedReferenceStub, SnapshotPayload, prepare_payload
from .plan import BatchItem, ImportSet, build_plan
from .references import (
    ReferenceResolver,
    entity_type_from_link,
    localize_alias_path,
    resolve_link_domain,
)

__all__ = [
    "BatchItem",
    "BatchProgress",
    "BatchRunner",
    "ChangeClassifier",
    "CheckpointCallback",
    "ContentImportError",
    "Create",
    "Decision",
    "DecisionKind",
    "DecodeError",
    "EmbeddedReferenceStub",
    "ImportCounters",
    "ImportOptions",
    "ImportResult",
    "ImportSet",
    "PersistenceError",
    "ProgressCallback",
    "ReconciliationEngine",
    "ReferenceResolver",
    "RunContext",
    "Skip",
    "SkipIdCollision",
    "SkipIncrementalAlreadyApplied",
    "SkipNewerInDb",
    "SkipUnchanged",
    "SnapshotDescriptor",
    "SnapshotIndex",
    "SnapshotPayload",
    "SnapshotSourceError",
    "UnknownEntityTypeError",
    "Update",
    "build_plan",
    "entity_type_from_link",
    "localize_alias_path",
    "loose_diff",
    "loose_equal",
    "prepare_payload",
    "resolve_link_domain",
    "watermark_key_for",
]
