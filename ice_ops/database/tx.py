from __future__ import annotations

from contextlib import contextmanager
import sqlite3


@contextmanager
def immediate_tx(conn: sqlite3.Connection):
    """
    Start an IMMEDIATE transaction (write lock taken up front),
    commit on success, rollback on error.

    If the connection is already inside a transaction the block simply joins
    it; the outer owner commits or rolls back.
    """
    if conn.in_transaction:
        yield conn
        return
    cur = conn.cursor()
    try:
        cur.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        cur.close()
