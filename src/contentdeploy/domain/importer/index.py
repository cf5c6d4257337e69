"""Discovery of snapshot files below a source directory."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from .errors import SnapshotSourceError

if TYPE_CHECKING:
    from collections.abc import Iterator

SNAPSHOT_SUFFIX: Final[str] = ".json"
SOFT_DELETE_MARKER: Final[str] = "_deleted"

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class SnapshotDescriptor:
    """Location and identity of one snapshot file."""

    entity_type_id: str
    uuid: str
    source: Path
    force_override: bool = False


@dataclass(frozen=True, slots=True)
class SnapshotIndex:
    """Find snapshot files as ``<entity_type>/<uuid>.json`` below a root."""

    suffix: str = SNAPSHOT_SUFFIX
    soft_delete_marker: str = SOFT_DELETE_MARKER

    def scan(self, root: Path, *, force_override: bool = False) -> tuple[SnapshotDescriptor, ...]:
        """Return one descriptor per snapshot file, ordered by path.

        The entity type is the name of the file's parent directory. Files whose
        path below ``root`` contains the soft-delete marker are ignored.
        """

        if not root.is_dir():
            raise SnapshotSourceError(f"Snapshot directory is not readable: {root}")

        descriptors: list[SnapshotDescriptor] = []
        try:
            candidates = sorted(self._walk(root))
        except OSError as exc:
            raise SnapshotSourceError(f"Unable to scan {root}: {exc}") from exc

        for path in candidates:
            if not path.is_file():
                continue
            if self.soft_delete_marker in path.relative_to(root).as_posix():
                continue
            descriptors.append(
                SnapshotDescriptor(
                    entity_type_id=path.parent.name,
                    uuid=path.name.removesuffix(self.suffix),
                    source=path,
                    force_override=force_override,
                )
            )

        log.debug("Found %s snapshot files below %s", len(descriptors), root)
        return tuple(descriptors)

    def _walk(self, root: Path) -> Iterator[Path]:
        # symlinked directories are followed; each real directory is read once
        visited: set[Path] = set()
        for directory, subdirectories, filenames in os.walk(
            root, onerror=_raise, followlinks=True
        ):
            real = Path(directory).resolve()
            if real in visited:
                subdirectories.clear()
                continue
            visited.add(real)
            for name in filenames:
                if name.endswith(self.suffix):
                    yield Path(directory) / name


def _raise(error: OSError) -> None:
    raise error
