"""Sequential, resumable execution of a planned import."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .context import RunContext
    from .plan import BatchItem

log = logging.getLogger(__name__)


class FileOperation(Protocol):
    """Process one planned file, returning a progress message (if any)."""

    def __call__(self, item: BatchItem, context: RunContext) -> str | None: ...


class FinishCallback(Protocol):
    def __call__(self, success: bool, context: RunContext) -> None: ...  # noqa: FBT001


@dataclass(frozen=True, slots=True)
class BatchProgress:
    """Progress report emitted after every file."""

    current: int
    total: int
    message: str | None


type ProgressCallback = Callable[[BatchProgress], None]
type CheckpointCallback = Callable[[int, dict[str, Any]], None]


@dataclass(slots=True)
class BatchRunner:
    """Run file operations strictly one at a time, in plan order.

    A failing file is turned into a diagnostic and the run moves on; entities
    persisted by earlier files stay persisted. After each file the optional
    ``checkpoint`` callback receives the position of the next item together
    with the serialised context, which is enough to resume the run later.
    """

    progress: ProgressCallback | None = None
    checkpoint: CheckpointCallback | None = None

    def run(
        self,
        items: Sequence[BatchItem],
        *,
        operation: FileOperation,
        finished: FinishCallback,
        context: RunContext,
        start: int = 0,
    ) -> bool:
        success = True
        try:
            for position in range(start, len(items)):
                item = items[position]
                message = self._run_item(item, operation, context)
                if self.progress is not None:
                    self.progress(BatchProgress(item.current, item.total, message))
                if self.checkpoint is not None:
                    self.checkpoint(position + 1, context.to_blob())
        except Exception:
            log.exception("Import batch aborted")
            success = False

        finished(success, context)
        return success

    @staticmethod
    def _run_item(item: BatchItem, operation: FileOperation, context: RunContext) -> str | None:
        try:
            message = operation(item, context)
        except Exception as exc:  # noqa: BLE001
            descriptor = item.descriptor
            message = (
                f"{context.progress_prefix(item.current, item.total)}, error on importing "
                f"{descriptor.entity_type_id} {descriptor.uuid}: {exc}"
            )
            log.debug("Import of %s failed", descriptor.source, exc_info=True)
            log.error("%s", message)
            context.record_failure(message)
            return message

        if message:
            log.info("%s", message)
        return message
