# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own SQLite file under tmp_path (schema + seed applied)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (via get_connection)
# - `ids` seeds the directory tables the ledger depends on
# - `client` talks to a Flask app bound to the same file
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from ice_ops.api import create_app
from ice_ops.config import Settings
from ice_ops.database import get_connection
from ice_ops.utils.auth import make_token

SECRET = "test-secret"


# ---------- Per-test database ----------
@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "ice_ops.db"


@pytest.fixture()
def conn(db_path: Path):
    con = get_connection(db_path)
    try:
        yield con
    finally:
        con.close()


# ---------- Directory data ----------
@pytest.fixture()
def ids(conn: sqlite3.Connection) -> dict:
    """Users, drivers, routes, products and customers used throughout the tests."""

    def ins(sql: str, *p) -> int:
        return int(conn.execute(sql, p).lastrowid)

    users = {}
    for username, role, active in (
        ("admin", "admin", 1),
        ("manager", "manager", 1),
        ("staff", "staff", 1),
        ("accountant", "accountant", 1),
        ("driverapp", "driver", 1),
        ("former", "staff", 0),
    ):
        users[username] = ins(
            "INSERT INTO users(username, full_name, role, is_active) VALUES (?,?,?,?)",
            username, username.title(), role, active,
        )

    out = {
        "user_admin": users["admin"],
        "user_manager": users["manager"],
        "user_staff": users["staff"],
        "user_accountant": users["accountant"],
        "user_driver": users["driverapp"],
        "user_inactive": users["former"],
        "driver_7": ins(
            "INSERT INTO drivers(driver_id, first_name, last_name) VALUES (7, 'Somchai', 'Dee')"
        ),
        "driver_b": ins("INSERT INTO drivers(first_name, last_name) VALUES ('Niran', 'Ploy')"),
        "route_north": ins("INSERT INTO delivery_routes(route_name) VALUES ('North Loop')"),
        "route_river": ins("INSERT INTO delivery_routes(route_name) VALUES ('River Road')"),
        "prod_tube": ins(
            "INSERT INTO products(product_name, default_unit_price, unit_of_measure) VALUES ('Tube Ice 20kg', 15, 'bag')"
        ),
        "prod_crushed": ins(
            "INSERT INTO products(product_name, default_unit_price, unit_of_measure) VALUES ('Crushed Ice 10kg', 10, 'bag')"
        ),
        "prod_block": ins(
            "INSERT INTO products(product_name, default_unit_price, unit_of_measure) VALUES ('Block Ice', 40, 'block')"
        ),
        "cust_cafe": ins("INSERT INTO customers(customer_name, phone) VALUES ('Mango Cafe', '081-000-0001')"),
        "cust_market": ins("INSERT INTO customers(customer_name) VALUES ('Riverside Market')"),
        "cust_closed": ins("INSERT INTO customers(customer_name, is_active) VALUES ('Closed Shop', 0)"),
    }
    conn.commit()
    return out


# ---------- Optional: simple current_user dict ----------
@pytest.fixture()
def current_user(ids: dict) -> dict:
    return {"user_id": ids["user_staff"], "username": "staff", "role": "staff"}


# ---------- Flask ----------
@pytest.fixture()
def app(db_path: Path, ids: dict):
    application = create_app(Settings(db_path=db_path, secret_key=SECRET, log_level="WARNING"))
    application.config["TESTING"] = True
    return application


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers(ids: dict):
    """auth_headers("manager") -> Authorization header for that seeded user."""

    def make(role: str = "staff") -> dict:
        key = "user_inactive" if role == "inactive" else f"user_{role}"
        token_role = "staff" if role == "inactive" else role
        return {"Authorization": f"Bearer {make_token(ids[key], token_role, SECRET)}"}

    return make
