from __future__ import annotations

import sqlite3

from ...utils.validators import is_iso_date, try_parse_int
from .errors import DomainError, NotFoundError


class ReconciliationRepo:
    """
    Read-only end-of-day view for one driver: what went out on the truck,
    what was sold, what came back, and the difference (loss).

    Loads are matched by their business-day `load_date`, sales through the
    day's summary, returns and packaging by their own date column. Loss is
    reported as computed; a negative value means more was sold or returned
    than was logged as loaded.
    """

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def get_summary(self, driver_id, date: str) -> dict:
        ok, did = try_parse_int(driver_id)
        if not ok or not is_iso_date(date):
            raise DomainError("Driver ID and Date (YYYY-MM-DD) are required.")

        summary = self.conn.execute(
            """
            SELECT s.summary_id, s.driver_id,
                   TRIM(d.first_name || ' ' || d.last_name) AS driver_name,
                   s.sale_date, s.route_id, r.route_name,
                   CAST(s.total_cash_sales_value AS REAL)          AS total_cash_sales_value,
                   CAST(s.total_new_credit_sales_value AS REAL)    AS total_new_credit_sales_value,
                   CAST(s.total_other_payment_sales_value AS REAL) AS total_other_payment_sales_value,
                   CAST(s.total_cash_collected_from_driver AS REAL) AS total_cash_collected_from_driver,
                   CAST(s.cash_variance AS REAL)                   AS cash_variance,
                   s.reconciliation_status, s.reconciliation_notes, s.reconciled_at,
                   (SELECT CAST(SUM(CAST(ll.quantity_loaded AS REAL)) AS REAL)
                      FROM loading_logs ll
                     WHERE ll.driver_id = s.driver_id AND ll.load_date = s.sale_date) AS total_products_loaded
            FROM driver_daily_summaries s
            JOIN drivers d              ON d.driver_id = s.driver_id
            LEFT JOIN delivery_routes r ON r.route_id = s.route_id
            WHERE s.driver_id = ? AND s.sale_date = ?
            """,
            (did, date),
        ).fetchone()
        if summary is None:
            raise NotFoundError(
                "No sales summary found for this driver on this date. Start the day first."
            )

        return {
            "summary": dict(summary),
            "product_reconciliation": self.product_rows(did, date),
            "packaging_reconciliation": self.packaging_rows(did, date),
        }

    def product_rows(self, driver_id: int, date: str) -> list[dict]:
        """loaded / sold / returned / loss per product with any movement that day."""
        rows = self.conn.execute(
            """
            WITH loaded AS (
                SELECT product_id, SUM(CAST(quantity_loaded AS REAL)) AS qty
                FROM loading_logs
                WHERE driver_id = :driver AND load_date = :day
                GROUP BY product_id
            ),
            sold AS (
                SELECT i.product_id, SUM(CAST(i.quantity_sold AS REAL)) AS qty
                FROM driver_sale_items i
                JOIN driver_sales ds            ON ds.sale_id = i.driver_sale_id
                JOIN driver_daily_summaries dds ON dds.summary_id = ds.driver_daily_summary_id
                WHERE dds.driver_id = :driver AND dds.sale_date = :day
                GROUP BY i.product_id
            ),
            returned AS (
                SELECT product_id, SUM(CAST(quantity_returned AS REAL)) AS qty
                FROM product_returns
                WHERE driver_id = :driver AND return_date = :day
                GROUP BY product_id
            )
            SELECT p.product_id, p.product_name,
                   COALESCE(l.qty, 0.0) AS loaded,
                   COALESCE(s.qty, 0.0) AS sold,
                   COALESCE(r.qty, 0.0) AS returned,
                   COALESCE(l.qty, 0.0) - COALESCE(s.qty, 0.0) - COALESCE(r.qty, 0.0) AS loss
            FROM products p
            LEFT JOIN loaded l   ON l.product_id = p.product_id
            LEFT JOIN sold s     ON s.product_id = p.product_id
            LEFT JOIN returned r ON r.product_id = p.product_id
            WHERE COALESCE(l.qty, 0) > 0 OR COALESCE(s.qty, 0) > 0 OR COALESCE(r.qty, 0) > 0
            ORDER BY p.product_id
            """,
            {"driver": driver_id, "day": date},
        ).fetchall()
        return [dict(r) for r in rows]

    def packaging_rows(self, driver_id: int, date: str) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT pt.packaging_type_id, pt.type_name,
                   SUM(COALESCE(CAST(pl.quantity_out AS REAL), 0.0))      AS quantity_out,
                   SUM(COALESCE(CAST(pl.quantity_returned AS REAL), 0.0)) AS quantity_returned,
                   SUM(COALESCE(CAST(pl.quantity_out AS REAL), 0.0))
                     - SUM(COALESCE(CAST(pl.quantity_returned AS REAL), 0.0)) AS outstanding
            FROM packaging_logs pl
            JOIN packaging_types pt ON pt.packaging_type_id = pl.packaging_type_id
            WHERE pl.driver_id = ? AND pl.log_date = ?
            GROUP BY pt.packaging_type_id, pt.type_name
            ORDER BY pt.packaging_type_id
            """,
            (driver_id, date),
        ).fetchall()
        return [dict(r) for r in rows]
