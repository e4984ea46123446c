"""
Daily summary manager.

One `driver_daily_summaries` row per (driver, business day). It carries the
three running sales totals (cash, new credit, other) that `recompute_totals`
derives from `driver_sales`, and the reconciliation state, which only moves
Pending -> Reconciled.
"""
from __future__ import annotations

import sqlite3
from datetime import date

from ...constants import PAYMENT_CASH, PAYMENT_CREDIT, STATUS_PENDING, STATUS_RECONCILED
from ...utils.helpers import as_date_str, fmt_money, round_money, utc_now_iso
from ...utils.loggers import get_logger
from ...utils.validators import is_iso_date, is_optional_text, parse_float, try_parse_int
from ..tx import immediate_tx
from .drivers_repo import DriversRepo
from .errors import DomainError, NotFoundError, SummaryReconciledError
from .routes_repo import RoutesRepo

_log = get_logger(__name__)

_SUMMARY_SELECT = """
    SELECT s.summary_id, s.driver_id,
           TRIM(d.first_name || ' ' || d.last_name) AS driver_name,
           s.sale_date, s.route_id, r.route_name,
           s.area_manager_id, u.username AS area_manager_name,
           s.last_updated_by_user_id,
           CAST(s.total_cash_sales_value AS REAL)          AS total_cash_sales_value,
           CAST(s.total_new_credit_sales_value AS REAL)    AS total_new_credit_sales_value,
           CAST(s.total_other_payment_sales_value AS REAL) AS total_other_payment_sales_value,
           CAST(s.total_cash_collected_from_driver AS REAL) AS total_cash_collected_from_driver,
           CAST(s.cash_variance AS REAL)                   AS cash_variance,
           s.reconciliation_status, s.reconciliation_notes, s.reconciled_at,
           s.created_at, s.updated_at
    FROM driver_daily_summaries s
    JOIN drivers d              ON d.driver_id = s.driver_id
    LEFT JOIN delivery_routes r ON r.route_id = s.route_id
    LEFT JOIN users u           ON u.user_id = s.area_manager_id
"""


class DriverSummariesRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.drivers = DriversRepo(conn)
        self.routes = RoutesRepo(conn)

    # ---- Reads -------------------------------------------------------------

    def get(self, summary_id: int) -> dict | None:
        row = self.conn.execute(_SUMMARY_SELECT + " WHERE s.summary_id = ?", (summary_id,)).fetchone()
        return dict(row) if row else None

    def require(self, summary_id: int) -> dict:
        s = self.get(summary_id)
        if s is None:
            raise NotFoundError(f"Driver daily summary {summary_id} not found.")
        return s

    def find(self, driver_id: int, sale_date: str) -> dict | None:
        row = self.conn.execute(
            _SUMMARY_SELECT + " WHERE s.driver_id = ? AND s.sale_date = ?",
            (driver_id, sale_date),
        ).fetchone()
        return dict(row) if row else None

    def list_summaries(
        self,
        *,
        driver_id: int | None = None,
        sale_date: str | None = None,
        reconciliation_status: str | None = None,
        summary_id: int | None = None,
    ) -> list[dict]:
        where: list[str] = []
        params: list = []
        if summary_id is not None:
            where.append("s.summary_id = ?")
            params.append(summary_id)
        if driver_id is not None:
            where.append("s.driver_id = ?")
            params.append(driver_id)
        if sale_date:
            where.append("s.sale_date = ?")
            params.append(sale_date)
        if reconciliation_status:
            where.append("s.reconciliation_status = ?")
            params.append(reconciliation_status)
        sql = _SUMMARY_SELECT
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY s.sale_date DESC, driver_name"
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    # ---- Writes ------------------------------------------------------------

    def start_day(
        self,
        *,
        driver_id,
        sale_date: str | date,
        route_id=None,
        area_manager_id: int | None = None,
    ) -> tuple[dict, bool]:
        """
        Open the driver's day. Returns (summary, created).

        Calling it again for the same driver and date returns the existing
        summary untouched, so two clerks starting the same day end up on one
        row.
        """
        ok, did = try_parse_int(driver_id)
        if not ok:
            raise DomainError("A valid driver id is required.")
        sale_date = as_date_str(sale_date)
        if not is_iso_date(sale_date):
            raise DomainError("Sale date must be YYYY-MM-DD.")
        if not self.drivers.exists(did):
            raise DomainError(f"Driver {did} does not exist.")
        rid = None
        if route_id is not None and route_id != "":
            ok, rid = try_parse_int(route_id)
            if not ok or not self.routes.exists(rid):
                raise DomainError(f"Route {route_id} does not exist.")

        with immediate_tx(self.conn):
            cur = self.conn.execute(
                """
                INSERT INTO driver_daily_summaries(driver_id, sale_date, route_id, area_manager_id, last_updated_by_user_id)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(driver_id, sale_date) DO NOTHING
                """,
                (did, sale_date, rid, area_manager_id, area_manager_id),
            )
            created = cur.rowcount == 1
        if created:
            _log.info("daily summary opened: driver=%s date=%s", did, sale_date)
        return self.find(did, sale_date), created

    def update_route(self, summary_id: int, route_id, *, user_id: int | None = None) -> dict:
        self.require(summary_id)
        rid = None
        if route_id is not None and route_id != "":
            ok, rid = try_parse_int(route_id)
            if not ok or not self.routes.exists(rid):
                raise DomainError(f"Route {route_id} does not exist.")
        with immediate_tx(self.conn):
            self.conn.execute(
                "UPDATE driver_daily_summaries SET route_id = ?, last_updated_by_user_id = ?, "
                "updated_at = CURRENT_TIMESTAMP WHERE summary_id = ?",
                (rid, user_id, summary_id),
            )
        return self.require(summary_id)

    def recompute_totals(self, summary_id: int) -> dict:
        """
        Re-derive the three payment buckets from the summary's sales and
        store them. Every writer of driver_sales calls this inside its own
        transaction; nothing else writes these columns.

        Cash -> total_cash_sales_value, Credit -> total_new_credit_sales_value,
        anything else (Debit, or a missing type) -> total_other_payment_sales_value.

        On a reconciled day (an override edit) cash_variance is re-derived
        from the recorded cash collected as well.
        """
        summary = self.conn.execute(
            "SELECT reconciliation_status, CAST(total_cash_collected_from_driver AS REAL) AS collected "
            "FROM driver_daily_summaries WHERE summary_id = ?",
            (summary_id,),
        ).fetchone()
        if summary is None:
            raise NotFoundError(f"Driver daily summary {summary_id} not found.")
        row = self.conn.execute(
            """
            SELECT
              COALESCE(SUM(CASE WHEN payment_type = ? THEN CAST(total_sale_amount AS REAL) END), 0) AS cash,
              COALESCE(SUM(CASE WHEN payment_type = ? THEN CAST(total_sale_amount AS REAL) END), 0) AS credit,
              COALESCE(SUM(CASE WHEN payment_type IS NULL OR payment_type NOT IN (?, ?)
                                THEN CAST(total_sale_amount AS REAL) END), 0) AS other
            FROM driver_sales
            WHERE driver_daily_summary_id = ?
            """,
            (PAYMENT_CASH, PAYMENT_CREDIT, PAYMENT_CASH, PAYMENT_CREDIT, summary_id),
        ).fetchone()
        self.conn.execute(
            """
            UPDATE driver_daily_summaries
               SET total_cash_sales_value = ?,
                   total_new_credit_sales_value = ?,
                   total_other_payment_sales_value = ?,
                   updated_at = CURRENT_TIMESTAMP
             WHERE summary_id = ?
            """,
            (round_money(row["cash"]), round_money(row["credit"]), round_money(row["other"]), summary_id),
        )
        if summary["reconciliation_status"] == STATUS_RECONCILED and summary["collected"] is not None:
            variance = round_money(summary["collected"] - row["cash"])
            self.conn.execute(
                "UPDATE driver_daily_summaries SET cash_variance = ? WHERE summary_id = ?",
                (variance, summary_id),
            )
            _log.info("summary %s cash variance re-derived after edit: %s", summary_id, fmt_money(variance))
        return {
            "total_cash_sales_value": round_money(row["cash"]),
            "total_new_credit_sales_value": round_money(row["credit"]),
            "total_other_payment_sales_value": round_money(row["other"]),
        }

    def reconcile(
        self,
        summary_id: int,
        *,
        cash_collected,
        notes: str | None = None,
        user_id: int | None = None,
    ) -> dict:
        """
        Close the day: refresh totals, record the cash handed in by the driver
        and the variance against cash sales, then mark the summary Reconciled.
        """
        try:
            collected = parse_float(cash_collected)
        except ValueError as e:
            raise DomainError("Cash collected from driver must be a number.") from e
        if collected < 0:
            raise DomainError("Cash collected from driver cannot be negative.")
        if not is_optional_text(notes):
            raise DomainError("Reconciliation notes must be text.")

        with immediate_tx(self.conn):
            row = self.conn.execute(
                "SELECT reconciliation_status FROM driver_daily_summaries WHERE summary_id = ?",
                (summary_id,),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Driver daily summary {summary_id} not found.")
            if row["reconciliation_status"] == STATUS_RECONCILED:
                raise SummaryReconciledError(f"Driver daily summary {summary_id} is already reconciled.")

            totals = self.recompute_totals(summary_id)
            variance = round_money(collected - totals["total_cash_sales_value"])
            self.conn.execute(
                """
                UPDATE driver_daily_summaries
                   SET total_cash_collected_from_driver = ?,
                       cash_variance = ?,
                       reconciliation_status = ?,
                       reconciliation_notes = ?,
                       reconciled_at = ?,
                       last_updated_by_user_id = ?,
                       updated_at = CURRENT_TIMESTAMP
                 WHERE summary_id = ? AND reconciliation_status = ?
                """,
                (round_money(collected), variance, STATUS_RECONCILED, notes, utc_now_iso(),
                 user_id, summary_id, STATUS_PENDING),
            )
        _log.info(
            "summary %s reconciled: cash collected %s, variance %s",
            summary_id, fmt_money(collected), fmt_money(variance),
        )
        return self.require(summary_id)

    def ensure_writable(self, summary_id: int, *, allow_reconciled: bool = False) -> dict:
        """
        Raise NotFoundError for a missing summary and SummaryReconciledError
        for a locked one (unless the caller may override). Returns the row.
        """
        row = self.conn.execute(
            "SELECT summary_id, driver_id, sale_date, route_id, reconciliation_status "
            "FROM driver_daily_summaries WHERE summary_id = ?",
            (summary_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Driver daily summary {summary_id} not found.")
        if row["reconciliation_status"] == STATUS_RECONCILED and not allow_reconciled:
            raise SummaryReconciledError(
                "Cannot change sales of an already reconciled summary. Contact a manager for adjustments."
            )
        return dict(row)
