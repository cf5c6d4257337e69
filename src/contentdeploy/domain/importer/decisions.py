"""Outcome of classifying one snapshot against the live repository."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from contentdeploy.domain.model import ContentEntity


class DecisionKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    SKIP_UNCHANGED = "skip_unchanged"
    SKIP_NEWER_IN_DB = "skip_newer_in_db"
    SKIP_INCREMENTAL = "skip_incremental_already_applied"
    SKIP_ID_COLLISION = "skip_id_collision"


@dataclass(frozen=True, slots=True, kw_only=True)
class Create:
    """Entity is missing locally and will be created.

    With ``preserve_id`` the literal id of the snapshot is kept; otherwise
    storage assigns a new one.
    """

    kind: ClassVar[DecisionKind] = DecisionKind.CREATE

    preserve_id: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class Update:
    """Entity exists locally and the snapshot replaces it."""

    kind: ClassVar[DecisionKind] = DecisionKind.UPDATE

    existing: ContentEntity


@dataclass(frozen=True, slots=True, kw_only=True)
class SkipUnchanged:
    """Snapshot is not newer than, or equal to, the live entity."""

    kind: ClassVar[DecisionKind] = DecisionKind.SKIP_UNCHANGED

    entity_id: int | None = None
    file_changed: int | None = None
    live_changed: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SkipNewerInDb(SkipUnchanged):
    """Live entity was changed after the snapshot was taken."""

    kind: ClassVar[DecisionKind] = DecisionKind.SKIP_NEWER_IN_DB


@dataclass(frozen=True, slots=True, kw_only=True)
class SkipIncrementalAlreadyApplied:
    """Snapshot was exported before the last recorded import of its source."""

    kind: ClassVar[DecisionKind] = DecisionKind.SKIP_INCREMENTAL

    export_timestamp: int
    watermark: int


@dataclass(frozen=True, slots=True, kw_only=True)
class SkipIdCollision:
    """Literal id is taken by an unrelated entity while ids are preserved."""

    kind: ClassVar[DecisionKind] = DecisionKind.SKIP_ID_COLLISION

    entity_id: int


type Skip = SkipUnchanged | SkipIncrementalAlreadyApplied | SkipIdCollision
type Decision = Create | Update | Skip
