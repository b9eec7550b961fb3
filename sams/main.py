"""Main application entry point."""

import argparse
import logging
import sys
from datetime import date

import uvicorn
from dotenv import load_dotenv

from sams.api.errors import AppError
from sams.cli import import_data
from sams.config import get_settings
from sams.services.logging import setup_server_logging

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Run the API server."""
    logger.info(f"Starting Uvicorn server on {host}:{port}...")
    uvicorn.run("sams.api.app:app", host=host, port=port, reload=reload, log_level="info")


def run_penalty_job(
    as_of: date | None = None, client_code: str | None = None, unit_ids: list[str] | None = None
) -> int:
    """Recalculate water penalties for one client or all of them."""
    from sams.services.db import SessionLocal
    from sams.services.penalty_service import PenaltyRecalculationService

    db = SessionLocal()
    try:
        service = PenaltyRecalculationService(db)
        if client_code:
            try:
                if unit_ids:
                    result = service.recalculate_for_units(client_code, unit_ids, as_of=as_of)
                else:
                    result = service.recalculate_for_client(client_code, as_of=as_of)
            except AppError as e:
                logger.error(f"Penalty recalculation failed for {client_code}: {e.message}")
                return 1
            logger.info(
                "%s: %d bills processed, %d updated, total penalties %s",
                client_code,
                result.processed_bills,
                result.updated_bills,
                result.total_penalties,
            )
            return 0
        run = service.recalculate_all_clients(as_of=as_of)
        logger.info(f"Penalty run complete: {run.total_updated} bills updated across {len(run.results)} clients")
        return 1 if run.errors else 0
    finally:
        db.close()


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="SAMS accounting backend")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    import_parser = subparsers.add_parser("import", help="Import a client's legacy export")
    import_data.add_arguments(import_parser)

    penalties = subparsers.add_parser("recalc-penalties", help="Recalculate water penalties")
    penalties.add_argument("--client", default=None, help="Client code (default: all clients)")
    penalties.add_argument(
        "--as-of", type=date.fromisoformat, default=None, help="Calculation date (YYYY-MM-DD)"
    )
    penalties.add_argument("--units", nargs="+", default=None, help="Limit to these unit codes")

    args = parser.parse_args()

    # Configure logging (with file logging)
    settings = get_settings()
    setup_server_logging(settings.log_file, settings.log_level)

    if args.command == "serve":
        run_server(args.host, args.port, args.reload)
        return 0
    if args.command == "import":
        return import_data.run(args)
    if args.units and not args.client:
        parser.error("--units requires --client")
    return run_penalty_job(args.as_of, args.client, args.units)


if __name__ == "__main__":
    sys.exit(main())
