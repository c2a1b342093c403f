"""Database subsystem for the request manager.

Public API::

    from reqmanager.db import init_database
"""

from reqmanager.db.init import apply_schema, init_database, missing_tables

__all__ = [
    "apply_schema",
    "init_database",
    "missing_tables",
]
