"""Import sets and the ordered execution plan built from them.

Every entity carrying references is imported twice: once in the direct pass
and once more in the correction pass, so references to entities created later
in the first pass can be resolved. Path aliases run last, after every
id-bearing entity of both passes exists, because alias targets may be ids
created during this run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from contentdeploy.domain.model import CoreEntityType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .index import SnapshotDescriptor


@dataclass(slots=True)
class ImportSet:
    """Snapshot descriptors partitioned by import pass, keyed by uuid."""

    direct: dict[str, SnapshotDescriptor] = field(default_factory=dict[str, "SnapshotDescriptor"])
    correctable: dict[str, SnapshotDescriptor] = field(
        default_factory=dict[str, "SnapshotDescriptor"]
    )
    path_aliases: dict[str, SnapshotDescriptor] = field(
        default_factory=dict[str, "SnapshotDescriptor"]
    )

    @classmethod
    def from_descriptors(cls, descriptors: Iterable[SnapshotDescriptor]) -> ImportSet:
        import_set = cls()
        for descriptor in descriptors:
            import_set.add(descriptor)
        return import_set

    def add(self, descriptor: SnapshotDescriptor) -> bool:
        """Claim ``descriptor`` for one partition; ``False`` if its uuid is taken."""

        uuid = descriptor.uuid
        if uuid in self.direct or uuid in self.path_aliases:
            return False

        if descriptor.entity_type_id == CoreEntityType.PATH_ALIAS:
            self.path_aliases[uuid] = descriptor
        elif descriptor.entity_type_id == CoreEntityType.FILE:
            # files hold no outbound references that need correction
            self.direct[uuid] = descriptor
        else:
            self.direct[uuid] = descriptor
            self.correctable[uuid] = descriptor
        return True

    def __len__(self) -> int:
        return len(self.direct) + len(self.correctable) + len(self.path_aliases)


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchItem:
    """One planned file operation."""

    descriptor: SnapshotDescriptor
    current: int
    total: int
    correction: bool = False


def build_plan(import_set: ImportSet) -> tuple[BatchItem, ...]:
    """Order ``import_set`` as direct pass, correction pass, then path aliases."""

    total = len(import_set)
    passes: tuple[tuple[Iterable[SnapshotDescriptor], bool], ...] = (
        (import_set.direct.values(), False),
        (import_set.correctable.values(), True),
        (import_set.path_aliases.values(), False),
    )
    items: list[BatchItem] = []
    for descriptors, correction in passes:
        for descriptor in descriptors:
            items.append(
                BatchItem(
                    descriptor=descriptor,
                    current=len(items) + 1,
                    total=total,
                    correction=correction,
                )
            )
    return tuple(items)
