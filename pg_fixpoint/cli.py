"""
CLI - Command-line interface for pg_fixpoint.

Captures, restores and compares database fixpoints outside of a test run,
e.g. to record a baseline by hand or to inspect why a comparison fails.
"""

import argparse
import logging
import sys
from typing import List, Optional

import psycopg2

from .config import Config
from .log import setup_logging
from .snapshot import (
    DatabaseCapture,
    DatabaseRestore,
    FixpointError,
    FixpointManager,
    FixpointStore,
    lineage,
    materialize,
)
from .ui import ConsoleUI


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_MISMATCH = 1
EXIT_ERROR = 2
EXIT_STORED = 3


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pg-fixpoint",
        description="Capture, restore and compare PostgreSQL database fixpoints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    pg-fixpoint -d app_test capture signed_up --parent base
    pg-fixpoint -d app_test restore base
    pg-fixpoint -d app_test compare signed_up --ignore updated_at created_at token
    pg-fixpoint --dir tests/fixpoints list
    pg-fixpoint show signed_up --materialize

Environment Variables:
    PGHOST, PGPORT, PGUSER, PGPASSWORD, PGDATABASE
    FIXPOINT_DIR      Directory holding fixpoint files

Exit codes:
    0  success / database matches fixpoint
    1  database differs from fixpoint
    2  error
    3  fixpoint was missing and has been created (--store-missing)
        """,
    )

    parser.add_argument("-c", "--config", help="Path to TOML config file")

    # Database connection
    parser.add_argument("-H", "--host", help="PostgreSQL host")
    parser.add_argument("-p", "--port", type=int, help="PostgreSQL port")
    parser.add_argument("-U", "--user", help="PostgreSQL user")
    parser.add_argument("-W", "--password", help="PostgreSQL password (or use PGPASSWORD env var)")
    parser.add_argument("-d", "--database", help="Database name")

    parser.add_argument("--dir", help="Fixpoint directory (default: tests/fixpoints)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print errors")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    capture = subparsers.add_parser("capture", help="Store the database as a fixpoint")
    capture.add_argument("name", help="Fixpoint name")
    capture.add_argument("--parent", help="Store only the changes relative to this fixpoint")
    capture.add_argument("--force", action="store_true", help="Overwrite an existing fixpoint")

    restore = subparsers.add_parser("restore", help="Load a fixpoint into the (empty) database")
    restore.add_argument("name", help="Fixpoint name")

    compare = subparsers.add_parser("compare", help="Compare the database with a fixpoint")
    compare.add_argument("name", help="Fixpoint name")
    compare.add_argument(
        "--ignore",
        nargs="*",
        metavar="COLUMN",
        help="Columns to ignore (default from config: updated_at created_at)",
    )
    compare.add_argument("--tables", nargs="+", metavar="TABLE", help="Only compare these tables")
    compare.add_argument(
        "--store-missing",
        action="store_true",
        help="Create the fixpoint from the database if it does not exist",
    )
    compare.add_argument("--parent", help="Parent for a fixpoint created by --store-missing")

    subparsers.add_parser("list", help="List stored fixpoints")

    show = subparsers.add_parser("show", help="Show a fixpoint")
    show.add_argument("name", help="Fixpoint name")
    show.add_argument("--materialize", action="store_true", help="Show the full state with parents resolved")

    delete = subparsers.add_parser("delete", help="Delete a fixpoint")
    delete.add_argument("name", help="Fixpoint name")

    return parser.parse_args(argv)


def create_connection(config: Config):
    """Create PostgreSQL connection."""
    logger.debug(f"Connecting to {config.database.host}:{config.database.port}/{config.database.name}")
    return psycopg2.connect(**config.database.connect_kwargs())


def build_manager(config: Config, conn=None) -> FixpointManager:
    """Wire a FixpointManager from configuration."""
    capture = restore = None
    if conn is not None:
        capture = DatabaseCapture(
            conn,
            schema=config.capture.schema,
            exclude_tables=config.capture.exclude_tables,
            order_by_primary_key=config.capture.order_by_primary_key,
        )
        restore = DatabaseRestore(
            conn,
            schema=config.capture.schema,
            reset_sequences=config.restore.reset_sequences,
        )
    return FixpointManager(
        FixpointStore(config.storage.dir),
        conn=conn,
        capture=capture,
        restore=restore,
        ignored_columns=config.compare.ignored_columns,
    )


# =============================================================================
# Commands
# =============================================================================

def cmd_capture(args, manager: FixpointManager, ui: ConsoleUI) -> int:
    if manager.exists(args.name) and not args.force:
        ui.print_error(f'Fixpoint "{args.name}" already exists (use --force to overwrite)')
        return EXIT_ERROR

    fixpoint = manager.store_fixpoint(args.name, args.parent)
    ui.print_success(
        f"Stored fixpoint [cyan]{args.name}[/] with {len(fixpoint.table_names)} tables"
        + (f" changed relative to {args.parent}" if args.parent else "")
    )
    return EXIT_OK


def cmd_restore(args, manager: FixpointManager, ui: ConsoleUI) -> int:
    ui.print_restore(manager.restore(args.name))
    return EXIT_OK


def cmd_compare(args, manager: FixpointManager, ui: ConsoleUI) -> int:
    tables = args.tables or "all"
    if args.store_missing:
        result = manager.compare_or_store(
            args.name,
            ignored_columns=args.ignore,
            tables=tables,
            parent_name=args.parent,
        )
    else:
        result = manager.compare(args.name, ignored_columns=args.ignore, tables=tables)

    ui.print_comparison(result)
    if result.stored:
        return EXIT_STORED
    return EXIT_OK if result.matched else EXIT_MISMATCH


def cmd_list(args, manager: FixpointManager, ui: ConsoleUI) -> int:
    ui.print_fixpoints(manager.list_fixpoints())
    return EXIT_OK


def cmd_show(args, manager: FixpointManager, ui: ConsoleUI) -> int:
    fixpoint = manager.load(args.name)
    chain = [level.name for level in lineage(fixpoint, manager.store)]
    state = materialize(fixpoint, manager.store) if args.materialize else None
    ui.print_fixpoint(fixpoint, chain, state)
    return EXIT_OK


def cmd_delete(args, manager: FixpointManager, ui: ConsoleUI) -> int:
    if not manager.delete(args.name):
        ui.print_error(f'Fixpoint "{args.name}" does not exist')
        return EXIT_ERROR
    ui.print_success(f"Deleted fixpoint [cyan]{args.name}[/]")
    return EXIT_OK


COMMANDS = {
    "capture": cmd_capture,
    "restore": cmd_restore,
    "compare": cmd_compare,
    "list": cmd_list,
    "show": cmd_show,
    "delete": cmd_delete,
}

NEEDS_DATABASE = {"capture", "restore", "compare"}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = Config.load(args.config).override_from_args(args)
    except (FileNotFoundError, ImportError, ValueError) as e:
        ConsoleUI().print_error(str(e))
        return EXIT_ERROR

    ui = ConsoleUI(quiet=config.output.quiet)
    setup_logging(config.output.log_level)

    errors = config.validate()
    if errors:
        for error in errors:
            ui.print_error(error)
        return EXIT_ERROR

    conn = None
    try:
        if args.command in NEEDS_DATABASE:
            conn = create_connection(config)
        manager = build_manager(config, conn)
        return COMMANDS[args.command](args, manager, ui)
    except FixpointError as e:
        ui.print_error(str(e))
        return EXIT_ERROR
    except (psycopg2.Error, ValueError) as e:
        # connection failures and invalid fixpoint names
        logger.debug("Command failed", exc_info=True)
        ui.print_error(f"{type(e).__name__}: {e}")
        return EXIT_ERROR
    finally:
        if conn is not None:
            conn.close()


def run():
    """Console script entry point."""
    sys.exit(main())
