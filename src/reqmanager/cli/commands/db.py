"""Database management subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config)
    elif args.db_command == "migrate":
        _db_migrate(config)
    else:
        sys.stderr.write("usage: reqmanager db {status,migrate}\n")
        sys.exit(1)


def _db_status(config) -> None:
    """Check database connectivity and schema status."""
    from reqmanager.db import init_database, missing_tables

    try:
        db = init_database(config.settings.database)
        db.fetch_value("SELECT 1")
        missing = missing_tables(db)
    except Exception as exc:
        log.exception("Database status check failed")
        sys.stderr.write(f"database: unreachable ({exc})\n")
        sys.exit(1)

    sys.stdout.write("database: connected\n")
    if missing:
        sys.stdout.write(f"schema:   missing tables: {', '.join(missing)}\n")
        sys.exit(2)
    sys.stdout.write("schema:   up to date\n")


def _db_migrate(config) -> None:
    """Apply the bundled schema."""
    from reqmanager.db import apply_schema, init_database

    try:
        db = init_database(config.settings.database)
        apply_schema(db)
    except Exception as exc:
        log.exception("Schema migration failed")
        sys.stderr.write(f"migration failed: {exc}\n")
        sys.exit(1)
    sys.stdout.write("schema applied\n")
