"""PostgreSQL bootstrap: connection pool, schema check and migration."""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from reqmanager.config.settings import DatabaseSettings

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

TABLES = ("certificates", "certificate_requests", "secrets", "events")

log = logging.getLogger(__name__)


def _settings_to_config(settings: DatabaseSettings) -> DatabaseConfig:
    fields = dataclasses.asdict(settings)
    fields.pop("auto_setup")
    return DatabaseConfig(**fields)


def init_database(settings: DatabaseSettings) -> Database:
    """Return the process-wide :class:`Database`, creating it on first use.

    With ``auto_setup`` PyPGKit applies :data:`SCHEMA_PATH` on connect.
    """
    if Database.is_initialized():
        return Database.get_instance()

    log.info(
        "Connecting to PostgreSQL %s@%s:%s/%s (pool %d-%d)",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
        settings.min_connections,
        settings.max_connections,
    )
    return Database.init(
        config=_settings_to_config(settings),
        schema_path=SCHEMA_PATH if settings.auto_setup else None,
        auto_setup=settings.auto_setup,
        interactive=False,
    )


def missing_tables(db: Database) -> list[str]:
    """Tables from :data:`TABLES` that the connected database lacks."""
    rows = db.fetch_all(
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = 'public' AND table_name = ANY(%s)",
        (list(TABLES),),
        as_dict=True,
    )
    present = {row["table_name"] for row in rows}
    return [table for table in TABLES if table not in present]


def apply_schema(db: Database) -> None:
    # every statement in schema.sql is IF NOT EXISTS
    log.info("Applying schema from %s", SCHEMA_PATH)
    db.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
