"""
Command-line interface for sync runs.

Usage:
    python -m finsync.cli.sync_cli sync --entity <entity> --tenant <tenant_id> [options]
    python -m finsync.cli.sync_cli init-db [options]

Exit codes: 0 succeeded, 2 partial, 1 aborted or invalid input.
"""

import argparse
import asyncio
import sys

from pydantic import ValidationError as PydanticValidationError

from finsync.config.settings import SyncSettings, load_environment
from finsync.core.models import RunResult, SyncRequest
from finsync.observability.logger import get_logger
from finsync.observability.metrics import start_metrics_server
from finsync.sync.errors import SyncError
from finsync.sync.service import open_dependencies, run_sync, systems_for
from finsync.sync.strategy import STRATEGIES
from finsync.warehouse import DatabaseConnectionPool, ensure_schema

logger = get_logger(__name__)

EXIT_SUCCEEDED = 0
EXIT_ABORTED = 1
EXIT_PARTIAL = 2

_EXIT_CODES = {
    "succeeded": EXIT_SUCCEEDED,
    "partial": EXIT_PARTIAL,
    "aborted": EXIT_ABORTED,
}


def exit_code_for(result: RunResult) -> int:
    return _EXIT_CODES[result.status]


def create_pool(args) -> DatabaseConnectionPool:
    """Connection pool from --db-* arguments, falling back to DB_* variables."""
    return DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )


def build_settings(args) -> SyncSettings:
    settings = SyncSettings.from_env()
    overrides = {}
    if args.backup_dir:
        overrides["backup_dir"] = args.backup_dir
    if args.page_size:
        overrides["page_size"] = args.page_size
    if args.timeout:
        overrides["run_timeout_s"] = args.timeout
    if overrides:
        settings = SyncSettings(**{**settings.model_dump(), **overrides})
    return settings


async def _sync(args) -> int:
    request = SyncRequest(
        date_from=args.date_from,
        date_to=args.date_to,
        days_back=args.days_back,
        limit=args.limit,
    )
    settings = build_settings(args)

    async with open_dependencies(
        settings,
        systems=systems_for([args.entity]),
        pool=create_pool(args),
    ) as deps:
        result = await run_sync(args.entity, args.tenant, request, deps)

    print(result.model_dump_json(indent=2))
    return exit_code_for(result)


def sync_command(args) -> int:
    """
    Execute a sync run.

    Args:
        args: Command-line arguments

    Returns:
        Process exit code
    """
    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    try:
        return asyncio.run(_sync(args))
    except PydanticValidationError as e:
        logger.error(f"Invalid sync request: {e}")
        return EXIT_ABORTED
    except SyncError as e:
        logger.error(f"Sync failed: {e.message}", extra={"error_code": e.code})
        return EXIT_ABORTED
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return EXIT_ABORTED


async def _init_db(args) -> list[str]:
    pool = create_pool(args)
    async with pool:
        return await ensure_schema(pool)


def init_db_command(args) -> int:
    """Create the warehouse tables."""
    try:
        tables = asyncio.run(_init_db(args))
    except SyncError as e:
        logger.error(f"Schema setup failed: {e.message}", extra={"error_code": e.code})
        return EXIT_ABORTED
    except Exception as e:
        logger.error(f"Schema setup failed: {e}", exc_info=True)
        return EXIT_ABORTED

    logger.info("Schema ready", extra={"tables": tables})
    return EXIT_SUCCEEDED


def add_db_arguments(parser: argparse.ArgumentParser) -> None:
    """Database connection arguments; unset values fall back to DB_* variables."""
    parser.add_argument("--db-host", default=None, help="Database host (default: $DB_HOST or localhost)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (default: $DB_PORT or 5432)")
    parser.add_argument("--db-name", default=None, help="Database name (default: $DB_NAME or finsync)")
    parser.add_argument("--db-user", default=None, help="Database user (default: $DB_USER or finsync)")
    parser.add_argument("--db-password", default=None, help="Database password (default: $DB_PASSWORD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sync ERP and CRM records into the warehouse",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the warehouse tables
  python -m finsync.cli.sync_cli init-db

  # Sync the last 30 days of payments for a tenant
  python -m finsync.cli.sync_cli sync --entity payments --tenant acme --days-back 30

  # Sync an explicit window, at most 500 invoices
  python -m finsync.cli.sync_cli sync --entity invoices --tenant acme \\
      --date-from 2024-01-01 --date-to 2024-03-31 --limit 500
        """
    )
    parser.add_argument("--env-file", default=None, help="Load environment variables from this file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sync_parser = subparsers.add_parser("sync", help="Sync one entity type")
    sync_parser.add_argument(
        "--entity",
        required=True,
        choices=sorted(STRATEGIES),
        help="Entity type to sync"
    )
    sync_parser.add_argument("--tenant", required=True, help="Tenant ID owning the synced rows")
    sync_parser.add_argument("--date-from", default=None, help="Inclusive start date (YYYY-MM-DD)")
    sync_parser.add_argument("--date-to", default=None, help="Inclusive end date (YYYY-MM-DD)")
    sync_parser.add_argument(
        "--days-back",
        type=int,
        default=365,
        help="Window length when no explicit dates are given (default: 365)"
    )
    sync_parser.add_argument("--limit", type=int, default=None, help="Maximum number of records to process")
    sync_parser.add_argument("--page-size", type=int, default=None, help="Records per upstream page (1-100)")
    sync_parser.add_argument("--timeout", type=float, default=None, help="Run timeout in seconds")
    sync_parser.add_argument("--backup-dir", default=None, help="Directory for audit snapshots")
    sync_parser.add_argument("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port")
    add_db_arguments(sync_parser)

    init_parser = subparsers.add_parser("init-db", help="Create the warehouse tables")
    add_db_arguments(init_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ABORTED

    load_environment(args.env_file)

    if args.command == "sync":
        return sync_command(args)
    if args.command == "init-db":
        return init_db_command(args)
    return EXIT_ABORTED


if __name__ == "__main__":
    sys.exit(main())
