# ice_ops/database/__init__.py
from __future__ import annotations

from pathlib import Path
import sqlite3

from ..config import load_settings
from ..constants import DEFAULT_DB_TIMEOUT, SCHEMA_VERSION
from . import schema as schema_module
from .seeders.default_data import seed as seed_default_data
from .tx import immediate_tx
from .versioning import stamp_version


def get_connection(
    db_path: Path | str | None = None,
    *,
    timeout: float | None = None,
    ensure_schema: bool = True,
) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures schema & seed data are applied idempotently.

    When `db_path` is omitted the path comes from the environment
    (see ice_ops.config.load_settings). Pass ensure_schema=False for
    short-lived per-request connections once the app has bootstrapped the DB.
    """
    if db_path is None:
        db_path = load_settings().db_path
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # Idempotent: uses CREATE IF NOT EXISTS / DROP TRIGGER IF EXISTS
    if ensure_schema:
        schema_module.init_schema(db_path)

    conn = sqlite3.connect(
        db_path,
        timeout=DEFAULT_DB_TIMEOUT if timeout is None else timeout,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA journal_mode = WAL;")

    if ensure_schema:
        stamp_version(conn, SCHEMA_VERSION)
        # Seeders should be safe to run repeatedly (idempotent).
        seed_default_data(conn)
        conn.commit()
    return conn


__all__ = [
    "get_connection",
    "immediate_tx",
]
