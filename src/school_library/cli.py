"""
Administrative command line for the School Library backend.

Usage:
    school-library init-db [--drop-existing]
    school-library seed [--sample-data]
    school-library sync-stock [--resource-id ID]
    school-library clear-all --yes
    school-library verify
    school-library serve [--host HOST] [--port PORT] [--reload]

Every command accepts ``--database-url`` to override the configured database.
"""

import argparse
import logging
import sys

import uvicorn

from .app import configure_logging
from .config import get_config
from .database.errors import RepositoryException
from .database.session import get_db_manager
from .services import seed
from .services.loan_service import LoanService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="school-library", description="School Library backend administration"
    )
    parser.add_argument("--database-url", help="Override the configured database URL")
    commands = parser.add_subparsers(dest="command", required=True)

    init_db = commands.add_parser("init-db", help="Create the database tables")
    init_db.add_argument(
        "--drop-existing", action="store_true", help="Drop existing tables before creating new ones"
    )

    seed_cmd = commands.add_parser("seed", help="Load reference data and the bootstrap admin")
    seed_cmd.add_argument(
        "--sample-data", action="store_true", help="Also generate development sample data"
    )

    sync = commands.add_parser("sync-stock", help="Recompute resource loan counters from loans")
    sync.add_argument("--resource-id", help="Only repair this resource")

    clear = commands.add_parser("clear-all", help="Delete every row of every table")
    clear.add_argument("--yes", action="store_true", help="Confirm the deletion")

    commands.add_parser("verify", help="Check loan references and stock counters")

    serve = commands.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", help="Bind address (defaults to the configured http_host)")
    serve.add_argument("--port", type=int, help="Port (defaults to the configured http_port)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    return parser


def cmd_init_db(args, db_manager) -> int:
    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        return 1
    db_manager.init_database(drop_existing=args.drop_existing)
    print("Database schema created")
    return 0


def cmd_seed(args, db_manager) -> int:
    config = get_config()
    db_manager.init_database()
    with db_manager.session_scope() as session:
        summary = seed.seed_reference_data(session)
        admin = seed.ensure_admin(session, config.admin_email, config.admin_password)
        summary.admin_created = admin is not None
        print(
            f"Reference data: {summary.person_types} person type(s), "
            f"{summary.resource_types} resource type(s), {summary.resource_states} state(s)"
        )
        if admin is not None:
            print(f"Admin user created: {admin.email}")

        if args.sample_data:
            if config.is_production:
                logger.error("Sample data cannot be generated in production")
                return 1
            sample = seed.generate_sample_data(session, loaned_by=admin.id if admin else None)
            print(
                f"Sample data: {sample.people} people, {sample.resources} resources, "
                f"{sample.loans} loans"
            )
            for loan_status, count in sorted(sample.loans_by_status.items()):
                print(f"  - {loan_status}: {count}")
    return 0


def cmd_sync_stock(args, db_manager) -> int:
    with db_manager.session_scope() as session:
        corrections = LoanService(session).sync_resource_stock(args.resource_id)
    if not corrections:
        print("All loan counters are in sync")
        return 0
    for c in corrections:
        print(f"{c.resource_id} '{c.title}': {c.before} -> {c.after}")
    print(f"Corrected {len(corrections)} resource(s)")
    return 0


def cmd_clear_all(args, db_manager) -> int:
    if get_config().is_production:
        logger.error("clear-all is disabled in production")
        return 1
    if not args.yes:
        logger.error("Refusing to clear the database without --yes")
        return 1
    with db_manager.session_scope() as session:
        deleted = seed.clear_all(session)
    print(f"Deleted {sum(deleted.values())} row(s)")
    return 0


def cmd_verify(args, db_manager) -> int:  # noqa: ARG001
    with db_manager.session_scope() as session:
        report = seed.verify_integrity(session)
    for loan_id in report.dangling_loans:
        print(f"Loan {loan_id} references a missing person or resource")
    for resource_id in report.out_of_sync_resources:
        print(f"Resource {resource_id} loan counter is out of sync (run sync-stock)")
    if report.ok:
        print("Integrity check passed")
        return 0
    return 1


def cmd_serve(args, db_manager) -> int:  # noqa: ARG001
    config = get_config()
    uvicorn.run(
        "school_library.app:create_app",
        factory=True,
        host=args.host or config.http_host,
        port=args.port or config.http_port,
        reload=args.reload,
        log_level=config.log_level.lower(),
    )
    return 0


COMMANDS = {
    "init-db": cmd_init_db,
    "seed": cmd_seed,
    "sync-stock": cmd_sync_stock,
    "clear-all": cmd_clear_all,
    "verify": cmd_verify,
    "serve": cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(config)

    db_manager = get_db_manager(args.database_url or config.get_database_url())
    try:
        return COMMANDS[args.command](args, db_manager)
    except RepositoryException as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
