"""Import run configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .errors import InvalidConfigurationError, MissingConfigurationError

SOURCE_DIR_ENV: Final[str] = "CONTENT_DEPLOY_DIR"


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportConfig:
    """Options of one import run."""

    source_dir: Path
    force_override: bool = False
    preserve_ids: bool = False
    incremental: bool = False
    verbose: bool = False


def get_import_config(
    folder: str | Path | None = None,
    *,
    force_override: bool = False,
    preserve_ids: bool = False,
    incremental: bool = False,
    verbose: bool = False,
) -> ImportConfig:
    """Resolve the source folder from ``folder`` or ``CONTENT_DEPLOY_DIR``.

    A folder that does not exist yet is accepted here; the import itself
    reports it. A path naming a regular file is rejected.
    """

    candidate = str(folder) if folder is not None else os.getenv(SOURCE_DIR_ENV)
    if candidate is None or not candidate.strip():
        raise MissingConfigurationError(
            SOURCE_DIR_ENV, "pass a folder or set it in the environment"
        )

    source_dir = Path(candidate.strip()).expanduser()
    if source_dir.is_file():
        raise InvalidConfigurationError(f"Content directory is a file: {source_dir}")
    return ImportConfig(
        source_dir=source_dir,
        force_override=force_override,
        preserve_ids=preserve_ids,
        incremental=incremental,
        verbose=verbose,
    )
