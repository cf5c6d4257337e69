"""Logging setup for the command line."""

from __future__ import annotations

import logging
from typing import Final

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
NOISY_LOGGERS: Final[tuple[str, ...]] = ("sqlalchemy.engine", "sqlalchemy.pool")


def configure_logging(*, verbose: bool = False, force: bool = False) -> None:
    """Send log records to stderr; ``verbose`` adds per-file debug output.

    SQLAlchemy's own loggers stay at WARNING either way. Pass ``force=True`` to
    reconfigure during tests.
    """

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
