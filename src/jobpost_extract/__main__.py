"""CLI entry point for jobpost-extract."""

from __future__ import annotations

import logging
import sys

from jobpost_extract.cli import (
    build_parser,
    handle_check_cookies,
    handle_extract,
    handle_extract_html,
    handle_import_cookies,
    handle_listing,
)
from jobpost_extract.logging import configure_file_logging, logger

_HANDLERS = {
    "import-cookies": handle_import_cookies,
    "check-cookies": handle_check_cookies,
    "extract": handle_extract,
    "listing": handle_listing,
    "extract-html": handle_extract_html,
}


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logger.setLevel(logging.DEBUG)
        for handler in logger.handlers:
            handler.setLevel(logging.DEBUG)
    if args.log_dir:
        configure_file_logging(args.log_dir, level=logger.level)

    _HANDLERS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
