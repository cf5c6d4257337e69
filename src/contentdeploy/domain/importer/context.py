"""Run-wide state shared by every file operation of one import."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from .decisions import DecisionKind

if TYPE_CHECKING:
    from pathlib import Path

WATERMARK_KEY_PREFIX = "contentdeploy.last_import."


def watermark_key_for(source_dir: Path) -> str:
    """Derive the watermark key identifying ``source_dir``."""

    digest = hashlib.md5(str(source_dir).encode(), usedforsecurity=False).hexdigest()
    return f"{WATERMARK_KEY_PREFIX}{digest}"


@dataclass(slots=True)
class ImportCounters:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class RunContextState(BaseModel):
    """Serialised form of :class:`RunContext`, kept by batch drivers between files."""

    model_config = ConfigDict(extra="ignore")

    watermark_key: str
    start_time: float
    previous_watermark: int = 0
    max_export_timestamp: int = 0
    skip_correction: list[str] = Field(default_factory=list)
    source_paths: dict[str, str] = Field(default_factory=dict)
    verbose: bool = False
    preserve_ids: bool = False
    incremental: bool = False
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    decisions: list[tuple[str, DecisionKind]] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class RunContext:
    """Mutable state of one import run.

    Every ``record_*`` method applies the whole outcome of one file at once,
    so the context never reflects half a file.
    """

    watermark_key: str
    start_time: float = field(default_factory=time.time)
    previous_watermark: int = 0
    max_export_timestamp: int = 0
    skip_correction: set[str] = field(default_factory=set[str])
    # source-environment path "/<type>/<id>" -> uuid the entity was imported as
    source_paths: dict[str, str] = field(default_factory=dict[str, str])
    verbose: bool = False
    preserve_ids: bool = False
    incremental: bool = False
    counters: ImportCounters = field(default_factory=ImportCounters)
    decisions: list[tuple[str, DecisionKind]] = field(
        default_factory=list[tuple[str, DecisionKind]]
    )
    errors: list[str] = field(default_factory=list[str])

    def observe_export(self, export_timestamp: int | None) -> None:
        if export_timestamp and export_timestamp > self.max_export_timestamp:
            self.max_export_timestamp = export_timestamp

    def record_skip(
        self,
        uuid: str,
        kind: DecisionKind,
        export_timestamp: int | None,
        *,
        correction: bool = False,
        source_path: str | None = None,
    ) -> None:
        if not correction:
            self.skip_correction.add(uuid)
        self._remember_source_path(uuid, source_path)
        self.observe_export(export_timestamp)
        self.decisions.append((uuid, kind))
        self.counters.skipped += 1

    def record_applied(
        self,
        uuid: str,
        kind: DecisionKind,
        export_timestamp: int | None,
        *,
        correction_required: bool,
        correction: bool = False,
        source_path: str | None = None,
    ) -> None:
        if not correction_required and not correction:
            self.skip_correction.add(uuid)
        self._remember_source_path(uuid, source_path)
        self.observe_export(export_timestamp)
        self.decisions.append((uuid, kind))
        if kind is DecisionKind.CREATE:
            self.counters.created += 1
        else:
            self.counters.updated += 1

    def consume_skip_correction(self, uuid: str) -> bool:
        """Return whether the correction pass for ``uuid`` is to be skipped.

        A mark is honoured once and then cleared.
        """

        if uuid not in self.skip_correction:
            return False
        self.skip_correction.discard(uuid)
        return True

    def imported_uuid_for(self, source_path: str) -> str | None:
        """Return the uuid of the entity found at ``source_path`` in the source environment."""

        return self.source_paths.get(source_path)

    def record_failure(self, message: str) -> None:
        self.errors.append(message)
        self.counters.failed += 1

    def _remember_source_path(self, uuid: str, source_path: str | None) -> None:
        if source_path is not None:
            self.source_paths[source_path] = uuid

    def elapsed_minutes(self) -> float:
        return (time.time() - self.start_time) / 60

    def progress_prefix(self, current: int, total: int) -> str:
        return f"{current} of {total} ({self.elapsed_minutes():.2f} minutes)"

    def to_blob(self) -> dict[str, Any]:
        return RunContextState(
            watermark_key=self.watermark_key,
            start_time=self.start_time,
            previous_watermark=self.previous_watermark,
            max_export_timestamp=self.max_export_timestamp,
            skip_correction=sorted(self.skip_correction),
            source_paths=dict(self.source_paths),
            verbose=self.verbose,
            preserve_ids=self.preserve_ids,
            incremental=self.incremental,
            created=self.counters.created,
            updated=self.counters.updated,
            skipped=self.counters.skipped,
            failed=self.counters.failed,
            decisions=list(self.decisions),
            errors=list(self.errors),
        ).model_dump(mode="json")

    @classmethod
    def from_blob(cls, blob: dict[str, Any]) -> RunContext:
        state = RunContextState.model_validate(blob)
        return cls(
            watermark_key=state.watermark_key,
            start_time=state.start_time,
            previous_watermark=state.previous_watermark,
            max_export_timestamp=state.max_export_timestamp,
            skip_correction=set(state.skip_correction),
            source_paths=dict(state.source_paths),
            verbose=state.verbose,
            preserve_ids=state.preserve_ids,
            incremental=state.incremental,
            counters=ImportCounters(
                created=state.created,
                updated=state.updated,
                skipped=state.skipped,
                failed=state.failed,
            ),
            decisions=list(state.decisions),
            errors=list(state.errors),
        )
