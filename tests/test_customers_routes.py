# tests/test_customers_routes.py
# Directory lookups the ledger leans on: customers, prices, products, route assignments.

from __future__ import annotations

import pytest

from ice_ops.database.repositories import (
    CustomersRepo,
    DomainError,
    DriversRepo,
    NotFoundError,
    ProductsRepo,
    RoutesRepo,
)


# ---------------------------------------------------------------------
# Customers & prices
# ---------------------------------------------------------------------

def test_customer_lookup_and_active_flag(conn, ids):
    repo = CustomersRepo(conn)
    cafe = repo.get(ids["cust_cafe"])
    assert cafe.customer_name == "Mango Cafe"
    assert cafe.phone == "081-000-0001"
    assert repo.is_active(ids["cust_cafe"])
    assert not repo.is_active(ids["cust_closed"])
    assert not repo.is_active(999999)
    assert repo.get(999999) is None


def test_latest_price_uses_effective_date_then_insertion(conn, ids):
    repo = CustomersRepo(conn)
    assert repo.latest_price(ids["cust_cafe"], ids["prod_tube"]) is None
    repo.set_price(ids["cust_cafe"], ids["prod_tube"], 14, effective_date="2024-02-01")
    repo.set_price(ids["cust_cafe"], ids["prod_tube"], 12, effective_date="2024-01-01")
    assert repo.latest_price(ids["cust_cafe"], ids["prod_tube"]) == 14.0
    repo.set_price(ids["cust_cafe"], ids["prod_tube"], 13.5, effective_date="2024-02-01")
    assert repo.latest_price(ids["cust_cafe"], ids["prod_tube"]) == 13.5


def test_list_prices_marks_custom_rows(conn, ids):
    repo = CustomersRepo(conn)
    repo.set_price(ids["cust_market"], ids["prod_block"], 35, effective_date="2024-01-01", reason="bulk")
    prices = {p["product_id"]: p for p in repo.list_prices(ids["cust_market"])}
    assert prices[ids["prod_block"]]["is_custom"] is True
    assert prices[ids["prod_block"]]["unit_price"] == 35.0
    assert prices[ids["prod_block"]]["effective_date"] == "2024-01-01"
    assert prices[ids["prod_tube"]]["is_custom"] is False
    assert prices[ids["prod_tube"]]["unit_price"] == 15.0
    with pytest.raises(NotFoundError):
        repo.list_prices(999999)


@pytest.mark.parametrize(
    "customer_key, product_key, price, day, exc",
    [
        ("cust_cafe", "prod_tube", -1, "2024-01-01", DomainError),
        ("cust_cafe", "prod_tube", "abc", "2024-01-01", DomainError),
        ("cust_cafe", "prod_tube", 10, "01-01-2024", DomainError),
        (None, "prod_tube", 10, "2024-01-01", NotFoundError),
        ("cust_cafe", None, 10, "2024-01-01", NotFoundError),
    ],
)
def test_set_price_validation(conn, ids, customer_key, product_key, price, day, exc):
    cid = ids[customer_key] if customer_key else 999999
    pid = ids[product_key] if product_key else 999999
    with pytest.raises(exc):
        CustomersRepo(conn).set_price(cid, pid, price, effective_date=day)
    assert conn.execute("SELECT COUNT(*) FROM customer_prices").fetchone()[0] == 0


def test_set_price_defaults_to_today(conn, ids, current_user):
    row = CustomersRepo(conn).set_price(
        ids["cust_cafe"], ids["prod_crushed"], "9.999", set_by_user_id=current_user["user_id"]
    )
    assert row["unit_price"] == 10.0
    assert len(row["effective_date"]) == 10
    assert row["set_by_user_id"] == current_user["user_id"]


# ---------------------------------------------------------------------
# Products & drivers
# ---------------------------------------------------------------------

def test_products_listing(conn, ids):
    conn.execute("UPDATE products SET is_active = 0 WHERE product_id = ?", (ids["prod_block"],))
    conn.commit()
    repo = ProductsRepo(conn)
    assert [p.product_name for p in repo.list_products()] == ["Crushed Ice 10kg", "Tube Ice 20kg"]
    assert len(repo.list_products(active_only=False)) == 3
    assert repo.get(ids["prod_block"]).unit_of_measure == "block"
    assert repo.exists(ids["prod_block"])
    assert not repo.exists(999999)


def test_driver_full_name(conn, ids):
    repo = DriversRepo(conn)
    assert repo.get(7).full_name == "Somchai Dee"
    assert repo.exists(ids["driver_b"])
    assert repo.get(999999) is None


# ---------------------------------------------------------------------
# Route assignments
# ---------------------------------------------------------------------

def test_add_customers_appends_in_order(conn, ids):
    repo = RoutesRepo(conn)
    repo.add_customer(ids["route_north"], ids["cust_market"])
    repo.add_customer(ids["route_north"], ids["cust_cafe"])
    rows = repo.list_customers(ids["route_north"])
    assert [(r["customer_name"], r["route_sequence"]) for r in rows] == [
        ("Riverside Market", 1),
        ("Mango Cafe", 2),
    ]


def test_remove_then_readd_reactivates(conn, ids):
    repo = RoutesRepo(conn)
    repo.add_customer(ids["route_north"], ids["cust_cafe"])
    repo.record_sale_marker(ids["route_north"], ids["cust_cafe"], "2024-03-01")
    conn.commit()
    repo.remove_customer(ids["route_north"], ids["cust_cafe"])
    assert repo.list_customers(ids["route_north"]) == []

    row = repo.add_customer(ids["route_north"], ids["cust_cafe"], route_sequence=5)
    assert row["is_active"] == 1
    assert row["route_sequence"] == 5
    assert row["total_sales_count"] == 1

    with pytest.raises(NotFoundError):
        repo.remove_customer(ids["route_north"], ids["cust_market"])


def test_inactive_customers_hidden_from_route_list(conn, ids):
    repo = RoutesRepo(conn)
    repo.add_customer(ids["route_river"], ids["cust_closed"])
    assert repo.list_customers(ids["route_river"]) == []


def test_reorder_customers(conn, ids):
    repo = RoutesRepo(conn)
    repo.add_customer(ids["route_north"], ids["cust_cafe"])
    repo.add_customer(ids["route_north"], ids["cust_market"])
    rows = repo.reorder_customers(ids["route_north"], [ids["cust_market"], ids["cust_cafe"]])
    assert [r["customer_id"] for r in rows] == [ids["cust_market"], ids["cust_cafe"]]

    with pytest.raises(DomainError):
        repo.reorder_customers(ids["route_north"], [ids["cust_cafe"], ids["cust_cafe"]])
    with pytest.raises(DomainError):
        repo.reorder_customers(ids["route_north"], [ids["cust_closed"]])
    # failed reorder leaves the previous order
    rows = repo.list_customers(ids["route_north"])
    assert [r["route_sequence"] for r in rows] == [1, 2]


def test_unknown_route_or_customer(conn, ids):
    repo = RoutesRepo(conn)
    with pytest.raises(NotFoundError):
        repo.list_customers(999999)
    with pytest.raises(NotFoundError):
        repo.add_customer(999999, ids["cust_cafe"])
    with pytest.raises(NotFoundError):
        repo.add_customer(ids["route_north"], 999999)
