# tests/test_driver_summaries.py

from __future__ import annotations

from datetime import date

import pytest

from ice_ops.database.repositories import (
    DomainError,
    DriverSalesRepo,
    DriverSummariesRepo,
    NotFoundError,
    SummaryReconciledError,
)


def _bucket_sums(conn, summary_id: int) -> tuple[float, float, float]:
    """Independent re-derivation of the three totals from driver_sales."""
    rows = conn.execute(
        "SELECT payment_type, CAST(total_sale_amount AS REAL) AS amt FROM driver_sales "
        "WHERE driver_daily_summary_id = ?",
        (summary_id,),
    ).fetchall()
    cash = sum(r["amt"] for r in rows if r["payment_type"] == "Cash")
    credit = sum(r["amt"] for r in rows if r["payment_type"] == "Credit")
    other = sum(r["amt"] for r in rows if r["payment_type"] not in ("Cash", "Credit"))
    return round(cash, 2), round(credit, 2), round(other, 2)


# ---------------------------------------------------------------------
# start_day
# ---------------------------------------------------------------------

def test_start_day_is_idempotent(conn, ids):
    repo = DriverSummariesRepo(conn)
    first, created = repo.start_day(driver_id=7, sale_date="2024-03-01", route_id=ids["route_north"])
    again, created_again = repo.start_day(driver_id=7, sale_date="2024-03-01", route_id=ids["route_river"])

    assert created is True
    assert created_again is False
    assert again["summary_id"] == first["summary_id"]
    # existing summary is returned unchanged
    assert again["route_id"] == ids["route_north"]
    n = conn.execute(
        "SELECT COUNT(*) AS n FROM driver_daily_summaries WHERE driver_id = 7 AND sale_date = '2024-03-01'"
    ).fetchone()["n"]
    assert n == 1


def test_start_day_defaults(conn, ids, current_user):
    s, _ = DriverSummariesRepo(conn).start_day(
        driver_id=ids["driver_b"], sale_date=date(2024, 3, 5), area_manager_id=current_user["user_id"]
    )
    assert s["sale_date"] == "2024-03-05"
    assert s["reconciliation_status"] == "Pending"
    assert s["route_id"] is None
    assert s["area_manager_name"] == "staff"
    assert (s["total_cash_sales_value"], s["total_new_credit_sales_value"], s["total_other_payment_sales_value"]) == (0, 0, 0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"driver_id": 7, "sale_date": "03/01/2024"},
        {"driver_id": 7, "sale_date": "2024-02-30"},
        {"driver_id": 9999, "sale_date": "2024-03-01"},
        {"driver_id": "abc", "sale_date": "2024-03-01"},
        {"driver_id": 7, "sale_date": "2024-03-01", "route_id": 9999},
    ],
)
def test_start_day_validation(conn, ids, kwargs):
    with pytest.raises(DomainError):
        DriverSummariesRepo(conn).start_day(**kwargs)


# ---------------------------------------------------------------------
# update_route / list
# ---------------------------------------------------------------------

def test_update_route(conn, ids):
    repo = DriverSummariesRepo(conn)
    s, _ = repo.start_day(driver_id=7, sale_date="2024-03-01")
    updated = repo.update_route(s["summary_id"], ids["route_river"], user_id=ids["user_manager"])
    assert updated["route_name"] == "River Road"
    assert updated["last_updated_by_user_id"] == ids["user_manager"]

    with pytest.raises(DomainError):
        repo.update_route(s["summary_id"], 9999)
    with pytest.raises(NotFoundError):
        repo.update_route(424242, ids["route_river"])


def test_list_and_find(conn, ids):
    repo = DriverSummariesRepo(conn)
    a, _ = repo.start_day(driver_id=7, sale_date="2024-03-01")
    repo.start_day(driver_id=7, sale_date="2024-03-02")
    repo.start_day(driver_id=ids["driver_b"], sale_date="2024-03-01")

    assert len(repo.list_summaries()) == 3
    assert len(repo.list_summaries(driver_id=7)) == 2
    assert len(repo.list_summaries(sale_date="2024-03-01")) == 2
    assert [r["summary_id"] for r in repo.list_summaries(summary_id=a["summary_id"])] == [a["summary_id"]]
    assert repo.list_summaries(reconciliation_status="Reconciled") == []
    assert repo.find(7, "2024-03-01")["summary_id"] == a["summary_id"]
    assert repo.find(7, "2024-04-01") is None
    assert repo.get(999999) is None


# ---------------------------------------------------------------------
# recompute_totals
# ---------------------------------------------------------------------

def test_recompute_totals_buckets_by_payment_type(conn, ids):
    summaries = DriverSummariesRepo(conn)
    s, _ = summaries.start_day(driver_id=7, sale_date="2024-03-01")
    sid = s["summary_id"]
    # raw rows, as an older client might have left them
    for ptype, amount in (("Cash", 45), ("Cash", 5.5), ("Credit", 30), ("Debit", 12.25)):
        conn.execute(
            "INSERT INTO driver_sales(driver_daily_summary_id, customer_id, payment_type, total_sale_amount) "
            "VALUES (?,?,?,?)",
            (sid, ids["cust_cafe"], ptype, amount),
        )
    conn.commit()

    totals = summaries.recompute_totals(sid)
    conn.commit()

    assert totals == {
        "total_cash_sales_value": 50.5,
        "total_new_credit_sales_value": 30.0,
        "total_other_payment_sales_value": 12.25,
    }
    row = summaries.get(sid)
    assert (
        row["total_cash_sales_value"],
        row["total_new_credit_sales_value"],
        row["total_other_payment_sales_value"],
    ) == _bucket_sums(conn, sid)


def test_recompute_totals_missing_summary(conn):
    with pytest.raises(NotFoundError):
        DriverSummariesRepo(conn).recompute_totals(12345)


# ---------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------

def test_reconcile_records_cash_and_variance(conn, ids):
    summaries = DriverSummariesRepo(conn)
    s, _ = summaries.start_day(driver_id=7, sale_date="2024-03-01")
    DriverSalesRepo(conn).submit_daily_sales(
        s["summary_id"],
        [
            {"customer_id": ids["cust_cafe"], "payment_type": "Cash",
             "items": [{"product_id": ids["prod_tube"], "quantity_sold": 3, "unit_price": 15}]},
            {"customer_id": ids["cust_market"], "payment_type": "Credit",
             "items": [{"product_id": ids["prod_crushed"], "quantity_sold": 2, "unit_price": 10}]},
        ],
    )

    rec = summaries.reconcile(s["summary_id"], cash_collected="40", notes="short 5", user_id=ids["user_manager"])
    assert rec["reconciliation_status"] == "Reconciled"
    assert rec["total_cash_collected_from_driver"] == 40.0
    assert rec["cash_variance"] == -5.0
    assert rec["total_new_credit_sales_value"] == 20.0
    assert rec["reconciliation_notes"] == "short 5"
    assert rec["reconciled_at"]

    with pytest.raises(SummaryReconciledError):
        summaries.reconcile(s["summary_id"], cash_collected=45)


def test_reconcile_validation(conn, ids):
    summaries = DriverSummariesRepo(conn)
    s, _ = summaries.start_day(driver_id=7, sale_date="2024-03-01")
    with pytest.raises(DomainError):
        summaries.reconcile(s["summary_id"], cash_collected="lots")
    with pytest.raises(DomainError):
        summaries.reconcile(s["summary_id"], cash_collected=-1)
    with pytest.raises(DomainError):
        summaries.reconcile(s["summary_id"], cash_collected=10, notes={"short": 5})
    with pytest.raises(NotFoundError):
        summaries.reconcile(999999, cash_collected=10)
    assert summaries.get(s["summary_id"])["reconciliation_status"] == "Pending"
