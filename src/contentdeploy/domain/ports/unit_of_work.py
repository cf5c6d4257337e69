"""Transaction boundary through which the importer reaches storage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self

if TYPE_CHECKING:
    from types import TracebackType

    from contentdeploy.domain.ports.persistence import EntityRepository, WatermarkStore


@dataclass(slots=True, kw_only=True)
class ContentRepositories:
    """Repositories bound to one open unit of work."""

    entities: EntityRepository
    watermarks: WatermarkStore


class ContentUnitOfWork(Protocol):
    """Scope of one imported file, or of one watermark read or write.

    Work not committed before the block exits is discarded.
    """

    @property
    def repositories(self) -> ContentRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool | None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
