from __future__ import annotations

import sqlite3

from flask import current_app, g

from ..database import get_connection


def get_db() -> sqlite3.Connection:
    """One connection per request, opened lazily and closed at teardown."""
    if "db" not in g:
        settings = current_app.config["ICE_OPS_SETTINGS"]
        g.db = get_connection(settings.db_path, timeout=settings.db_timeout, ensure_schema=False)
    return g.db


def close_db(exc=None) -> None:
    conn = g.pop("db", None)
    if conn is not None:
        conn.close()
