from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from contentdeploy.app import import_content
from contentdeploy.config import ConfigurationError, configure_logging, get_import_config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Deploy exported content snapshots")
    subparsers = parser.add_subparsers(dest="command", required=True)

    importer = subparsers.add_parser("import", help="Import content snapshots")
    importer.add_argument(
        "--folder",
        type=str,
        default=None,
        help="Directory holding the snapshots (defaults to CONTENT_DEPLOY_DIR)",
    )
    importer.add_argument(
        "--force-override",
        action="store_true",
        help="Update entities even when the stored copy is not older",
    )
    importer.add_argument(
        "--preserve-ids",
        action="store_true",
        help="Keep the ids of the snapshots for new entities",
    )
    importer.add_argument(
        "--incremental",
        action="store_true",
        help="Skip snapshots exported before the last import of this folder",
    )
    importer.add_argument(
        "--verbose",
        action="store_true",
        help="Report every file",
    )

    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Run ``contentdeploy import`` and exit non-zero when the run failed."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(verbose=parsed_args.verbose)

    try:
        config = get_import_config(
            parsed_args.folder,
            force_override=parsed_args.force_override,
            preserve_ids=parsed_args.preserve_ids,
            incremental=parsed_args.incremental,
            verbose=parsed_args.verbose,
        )
    except ConfigurationError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        result = import_content(config)
    except Exception:
        log.exception("Fatal error during import")
        sys.exit(1)

    if not result.success:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Stop between files on Ctrl+C; files imported so far stay imported."""
    log.warning("Import interrupted by user; the watermark was not updated")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
