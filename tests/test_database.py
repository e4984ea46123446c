# tests/test_database.py
# Ledger store plumbing: connection setup, schema version, seed data, transactions.

from __future__ import annotations

import sqlite3

import pytest

from ice_ops.constants import SCHEMA_VERSION
from ice_ops.database import get_connection, immediate_tx
from ice_ops.database.versioning import get_current_version, stamp_version


def test_connection_pragmas(conn):
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    assert conn.execute("PRAGMA journal_mode").fetchone()[0].lower() == "wal"
    assert isinstance(conn.execute("SELECT 1 AS one").fetchone(), sqlite3.Row)


def test_schema_version_stamped(conn):
    assert get_current_version(conn) == SCHEMA_VERSION


def test_stamp_version_returns_previous(conn):
    assert stamp_version(conn, SCHEMA_VERSION) == SCHEMA_VERSION
    assert stamp_version(conn, "99") == SCHEMA_VERSION
    assert get_current_version(conn) == "99"
    row = conn.execute("SELECT updated_at FROM schema_version WHERE id = 1").fetchone()
    assert row["updated_at"] is not None


def test_reopen_is_idempotent(db_path, conn):
    reasons = conn.execute("SELECT COUNT(*) FROM loss_reasons").fetchone()[0]
    types = conn.execute("SELECT COUNT(*) FROM packaging_types").fetchone()[0]
    again = get_connection(db_path)
    try:
        assert again.execute("SELECT COUNT(*) FROM loss_reasons").fetchone()[0] == reasons == 5
        assert again.execute("SELECT COUNT(*) FROM packaging_types").fetchone()[0] == types == 3
    finally:
        again.close()


def test_immediate_tx_commits_and_rolls_back(conn, ids):
    with immediate_tx(conn):
        conn.execute("INSERT INTO delivery_routes(route_name) VALUES ('Harbour')")
    with pytest.raises(RuntimeError):
        with immediate_tx(conn):
            conn.execute("INSERT INTO delivery_routes(route_name) VALUES ('Airport')")
            raise RuntimeError("abort")
    names = {r[0] for r in conn.execute("SELECT route_name FROM delivery_routes")}
    assert "Harbour" in names
    assert "Airport" not in names
    assert not conn.in_transaction


def test_immediate_tx_joins_open_transaction(conn, ids):
    conn.execute("INSERT INTO delivery_routes(route_name) VALUES ('Outer')")
    assert conn.in_transaction
    with immediate_tx(conn):
        conn.execute("INSERT INTO delivery_routes(route_name) VALUES ('Inner')")
    # still the caller's transaction to finish
    assert conn.in_transaction
    conn.rollback()
    names = {r[0] for r in conn.execute("SELECT route_name FROM delivery_routes")}
    assert not names & {"Outer", "Inner"}


def test_sale_items_cascade_with_sale(conn, ids):
    conn.execute(
        "INSERT INTO driver_daily_summaries(driver_id, sale_date) VALUES (?, '2024-03-01')", (ids["driver_7"],)
    )
    sid = conn.execute("SELECT summary_id FROM driver_daily_summaries").fetchone()[0]
    sale_id = conn.execute(
        "INSERT INTO driver_sales(driver_daily_summary_id, customer_id, payment_type, total_sale_amount) "
        "VALUES (?, ?, 'Cash', 15)",
        (sid, ids["cust_cafe"]),
    ).lastrowid
    conn.execute(
        "INSERT INTO driver_sale_items(driver_sale_id, product_id, quantity_sold, unit_price, transaction_type, line_total) "
        "VALUES (?, ?, 1, 15, 'Sale', 15)",
        (sale_id, ids["prod_tube"]),
    )
    conn.execute("DELETE FROM driver_sales WHERE sale_id = ?", (sale_id,))
    conn.commit()
    assert conn.execute("SELECT COUNT(*) FROM driver_sale_items").fetchone()[0] == 0


@pytest.mark.parametrize(
    "sql",
    [
        "INSERT INTO driver_daily_summaries(driver_id, sale_date, reconciliation_status) VALUES (7, '2024-03-02', 'Done')",
        "INSERT INTO users(username, full_name, role) VALUES ('x', 'X', 'owner')",
        "INSERT INTO loading_logs(load_batch_id, driver_id, product_id, quantity_loaded, load_type, load_timestamp, load_date) "
        "VALUES ('b', 7, 1, 0, 'initial', '2024-03-01T00:00:00+00:00', '2024-03-01')",
    ],
)
def test_check_constraints(conn, ids, sql):
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(sql)
    conn.rollback()
