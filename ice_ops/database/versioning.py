"""
Single-row `schema_version` bookkeeping for the ledger database.

The DDL in schema.py is idempotent, so "upgrading" only means stamping the
new version.
"""
import sqlite3

from ..constants import TABLE_SCHEMA_VERSION
from ..utils.loggers import get_logger

_log = get_logger(__name__)


def _ensure_table(conn: sqlite3.Connection):
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}(
            id         INTEGER PRIMARY KEY CHECK (id=1),
            version    TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
    """)


def get_current_version(conn: sqlite3.Connection) -> str | None:
    _ensure_table(conn)
    row = conn.execute(f"SELECT version FROM {TABLE_SCHEMA_VERSION} WHERE id=1;").fetchone()
    return row[0] if row else None


def stamp_version(conn: sqlite3.Connection, version: str) -> str | None:
    """
    Record `version` as current and return the previous one (None on a fresh
    database). A no-op when the database is already at `version`.
    """
    previous = get_current_version(conn)
    if previous == version:
        return previous
    conn.execute(
        f"INSERT INTO {TABLE_SCHEMA_VERSION}(id, version, updated_at) VALUES (1, ?, CURRENT_TIMESTAMP) "
        "ON CONFLICT(id) DO UPDATE SET version = excluded.version, updated_at = excluded.updated_at;",
        (version,),
    )
    conn.commit()
    if previous is None:
        _log.info("ledger database created at schema version %s", version)
    else:
        _log.info("ledger schema upgraded %s -> %s", previous, version)
    return previous
