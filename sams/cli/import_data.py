"""CLI for importing a client's legacy JSON export.

Usage:
    sams import MTC --components config units --dry-run
    python -m sams.cli.import_data MTC

Exit Codes:
    0 - Success: every selected component imported
    1 - Failure: a component was aborted or a file was missing

Logging:
    INFO level logs to both stdout and logs/sams.log
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from sams.api.errors import AppError
from sams.config import get_settings
from sams.services.import_service import COMPONENTS, ImportService
from sams.services.logging import setup_server_logging

logger = logging.getLogger(__name__)


def add_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("client", help="Client code, e.g. MTC")
    parser.add_argument(
        "--components",
        nargs="+",
        choices=COMPONENTS,
        default=None,
        help="Components to import (default: all, in dependency order)",
    )
    parser.add_argument("--data-path", default=None, help="Export directory")
    parser.add_argument("--fiscal-year", type=int, default=None, help="Fiscal year for HOA dues")
    parser.add_argument("--dry-run", action="store_true", help="Validate without saving")


def run(args: argparse.Namespace) -> int:
    """
    Run the import for the parsed arguments.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    settings = get_settings()
    data_path = Path(args.data_path or Path(settings.import_data_path) / args.client)

    from sams.services.db import SessionLocal

    db = SessionLocal()
    try:
        service = ImportService(
            db,
            args.client,
            data_path,
            dry_run=args.dry_run,
            max_errors=settings.import_max_errors,
        )
        results = service.run(args.components, fiscal_year=args.fiscal_year)
    except AppError as e:
        logger.error(f"Import failed: {e.message}")
        return 1
    finally:
        db.close()

    for result in results:
        logger.info(
            "%s: %d total, %d imported, %d failed",
            result.component,
            result.total,
            result.success,
            result.failed,
        )
    return 1 if any(r.failed for r in results) else 0


def main() -> int:
    load_dotenv()
    settings = get_settings()
    setup_server_logging(settings.log_file, settings.log_level)
    parser = argparse.ArgumentParser(description="Import legacy SAMS data")
    add_arguments(parser)
    try:
        return run(parser.parse_args())
    except KeyboardInterrupt:
        logger.warning("Import interrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
