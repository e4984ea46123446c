"""
Returns/loss processor.

End-of-day product returns (with a loss reason) and packaging movements for
a driver. Both are keyed by (driver_id, date) and saved with the same
full-day replace as the sales batch. Returns never touch the summary's money
totals; they only feed the reconciliation view.
"""
from __future__ import annotations

import sqlite3
from typing import Mapping

from ...utils.loggers import get_logger
from ...utils.validators import (
    is_iso_date,
    is_non_negative_number,
    is_optional_text,
    non_empty,
    try_parse_float,
    try_parse_int,
)
from ..tx import immediate_tx
from .errors import DomainError, NotFoundError

_log = get_logger(__name__)


class DriverReturnsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Internal helpers ---------------------------------------------------

    @staticmethod
    def _require_driver_and_date(driver_id, day: str) -> int:
        ok, did = try_parse_int(driver_id)
        if not ok or did <= 0:
            raise DomainError("A valid driver id is required.")
        if not is_iso_date(day):
            raise DomainError("A valid date (YYYY-MM-DD) is required.")
        return did

    @staticmethod
    def _require_list(value, label: str) -> list:
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(v, Mapping) for v in value):
            raise DomainError(f"{label} must be a list of objects.")
        return value

    def _clear_day(self, driver_id: int, day: str, *, packaging: bool) -> None:
        self.conn.execute(
            "DELETE FROM product_returns WHERE driver_id = ? AND return_date = ?", (driver_id, day)
        )
        if packaging:
            self.conn.execute(
                "DELETE FROM packaging_logs WHERE driver_id = ? AND log_date = ?", (driver_id, day)
            )

    def _insert_return(self, *, driver_id, day, summary_id, area_manager_id, item: Mapping,
                       reason_id, custom_reason) -> None:
        self.conn.execute(
            """
            INSERT INTO product_returns(driver_id, return_date, product_id, quantity_returned,
                                        loss_reason_id, custom_reason_for_loss,
                                        driver_daily_summary_id, area_manager_id, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (driver_id, day, item.get("product_id"), item.get("quantity_returned"),
             reason_id, custom_reason, summary_id, area_manager_id, item.get("notes")),
        )

    @staticmethod
    def _check_batch_rows(products: list, packaging: list) -> None:
        """
        Shape checks for the batch save. Ids must be integers, quantities
        numbers and free text strings; sign and foreign-key checks are left
        to the table constraints.
        """
        for n, item in enumerate(products, start=1):
            if not try_parse_int(item.get("product_id"))[0]:
                raise DomainError(f"Product return {n}: a valid product id is required.")
            if not try_parse_float(item.get("quantity_returned"))[0]:
                raise DomainError(f"Product return {n}: quantity returned must be a number.")
            reason = item.get("loss_reason_id")
            if reason is not None and not try_parse_int(reason)[0]:
                raise DomainError(f"Product return {n}: invalid loss reason id.")
            if not (is_optional_text(item.get("custom_reason_for_loss"))
                    and is_optional_text(item.get("notes"))):
                raise DomainError(f"Product return {n}: reason and notes must be text.")
        for n, p in enumerate(packaging, start=1):
            if not try_parse_int(p.get("packaging_type_id"))[0]:
                raise DomainError(f"Packaging log {n}: a valid packaging type id is required.")
            for key in ("quantity_out", "quantity_returned"):
                if p.get(key) is not None and not try_parse_float(p.get(key))[0]:
                    raise DomainError(f"Packaging log {n}: {key} must be a number.")
            if not is_optional_text(p.get("notes")):
                raise DomainError(f"Packaging log {n}: notes must be text.")

    # ---- Batch (end of day screen) -----------------------------------------

    def submit_daily_returns(
        self,
        *,
        driver_id,
        return_date: str,
        summary_id,
        product_items=None,
        packaging_items=None,
        area_manager_id: int | None = None,
    ) -> dict:
        """
        Replace the driver's product returns and packaging logs for the day.

        Reasons may be empty here. Malformed rows are rejected before anything
        is written; database constraints still reject negative quantities or
        unknown ids, which rolls the whole save back. The summary must be the
        same driver's summary for `return_date`.
        """
        did = self._require_driver_and_date(driver_id, return_date)
        ok, sid = try_parse_int(summary_id)
        if not ok:
            raise DomainError("Driver id, return date and summary id are required.")
        products = self._require_list(product_items, "product_items")
        packaging = self._require_list(packaging_items, "packaging_items")
        self._check_batch_rows(products, packaging)

        with immediate_tx(self.conn):
            summary = self.conn.execute(
                "SELECT driver_id, sale_date FROM driver_daily_summaries WHERE summary_id = ?", (sid,)
            ).fetchone()
            if summary is None:
                raise NotFoundError(f"Driver daily summary {sid} not found.")
            if summary["driver_id"] != did or summary["sale_date"] != return_date:
                raise DomainError(
                    f"Driver daily summary {sid} does not belong to driver {did} on {return_date}."
                )
            self._clear_day(did, return_date, packaging=True)
            for item in products:
                self._insert_return(
                    driver_id=did, day=return_date, summary_id=sid, area_manager_id=area_manager_id,
                    item=item, reason_id=item.get("loss_reason_id"),
                    custom_reason=item.get("custom_reason_for_loss"),
                )
            self.conn.executemany(
                """
                INSERT INTO packaging_logs(driver_id, log_date, packaging_type_id, quantity_out,
                                           quantity_returned, driver_daily_summary_id,
                                           area_manager_id, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (did, return_date, p.get("packaging_type_id"), p.get("quantity_out"),
                     p.get("quantity_returned"), sid, area_manager_id, p.get("notes"))
                    for p in packaging
                ],
            )
        _log.info(
            "daily returns saved: driver=%s date=%s products=%d packaging=%d",
            did, return_date, len(products), len(packaging),
        )
        return {"product_returns_saved": len(products), "packaging_logs_saved": len(packaging)}

    # ---- Interactive product returns ---------------------------------------

    def record_product_returns(
        self,
        *,
        driver_id,
        return_date: str,
        items,
        summary_id=None,
        area_manager_id: int | None = None,
    ) -> int:
        """
        Save the day's product returns entered one by one. Lines with no
        returned quantity are ignored; every remaining line needs a loss
        reason id or a written reason. Returns the number of rows saved.
        """
        did = self._require_driver_and_date(driver_id, return_date)
        if not isinstance(items, list):
            raise DomainError("Items must be a list.")
        sid = None
        if summary_id is not None and summary_id != "":
            ok, sid = try_parse_int(summary_id)
            if not ok:
                raise DomainError("Invalid driver daily summary id.")

        to_log = []
        for item in items:
            if not isinstance(item, Mapping):
                raise DomainError("Each return must be an object.")
            ok, qty = try_parse_float(item.get("quantity_returned"))
            if not ok or qty <= 0:
                continue
            ok, pid = try_parse_int(item.get("product_id"))
            if not ok:
                raise DomainError("Each return needs a valid product id.")
            ok, reason_id = try_parse_int(item.get("loss_reason_id"))
            custom = item.get("custom_reason_for_loss")
            if not (is_optional_text(custom) and is_optional_text(item.get("notes"))):
                raise DomainError(f"Reason and notes for product {pid} must be text.")
            if not ok and not non_empty(custom):
                raise DomainError(f"A loss reason is required for product {pid}.")
            to_log.append(
                (
                    {"product_id": pid, "quantity_returned": qty,
                     "notes": item["notes"].strip() if non_empty(item.get("notes")) else None},
                    reason_id if ok else None,
                    None if ok else custom.strip(),
                )
            )

        with immediate_tx(self.conn):
            self._clear_day(did, return_date, packaging=False)
            for row, reason_id, custom in to_log:
                self._insert_return(
                    driver_id=did, day=return_date, summary_id=sid, area_manager_id=area_manager_id,
                    item=row, reason_id=reason_id, custom_reason=custom,
                )
        _log.info("product returns saved: driver=%s date=%s rows=%d", did, return_date, len(to_log))
        return len(to_log)

    def list_product_returns(
        self,
        *,
        driver_id: int | None = None,
        date: str | None = None,
        product_id: int | None = None,
    ) -> list[dict]:
        where: list[str] = []
        params: list = []
        if driver_id is not None:
            where.append("pr.driver_id = ?")
            params.append(driver_id)
        if date:
            where.append("pr.return_date = ?")
            params.append(date)
        if product_id is not None:
            where.append("pr.product_id = ?")
            params.append(product_id)
        sql = """
          SELECT pr.return_id, pr.driver_id,
                 TRIM(d.first_name || ' ' || d.last_name) AS driver_name,
                 pr.return_date, pr.product_id, p.product_name,
                 CAST(pr.quantity_returned AS REAL) AS quantity_returned,
                 pr.loss_reason_id, lr.reason_description,
                 pr.custom_reason_for_loss, pr.driver_daily_summary_id,
                 pr.area_manager_id, u.username AS area_manager_name, pr.notes
          FROM product_returns pr
          JOIN drivers d           ON d.driver_id = pr.driver_id
          JOIN products p          ON p.product_id = pr.product_id
          LEFT JOIN loss_reasons lr ON lr.loss_reason_id = pr.loss_reason_id
          LEFT JOIN users u         ON u.user_id = pr.area_manager_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY pr.return_date DESC, pr.return_id"
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    # ---- Packaging ------------------------------------------------------------

    def record_packaging_log(
        self,
        *,
        driver_id,
        log_date: str,
        packaging_type_id,
        quantity_out=None,
        quantity_returned=None,
        shrinkage_override=None,
        summary_id=None,
        notes: str | None = None,
        area_manager_id: int | None = None,
    ) -> dict:
        did = self._require_driver_and_date(driver_id, log_date)
        ok, ptid = try_parse_int(packaging_type_id)
        if not ok:
            raise DomainError("A valid packaging type id is required.")
        for label, v in (("Quantity out", quantity_out), ("Quantity returned", quantity_returned)):
            if v is not None and not is_non_negative_number(v):
                raise DomainError(f"{label} must be a non-negative number if provided.")
        if shrinkage_override is not None and not try_parse_float(shrinkage_override)[0]:
            raise DomainError("Shrinkage override must be a number if provided.")
        if not is_optional_text(notes):
            raise DomainError("Notes must be text.")
        sid = None
        if summary_id is not None and summary_id != "":
            ok, sid = try_parse_int(summary_id)
            if not ok:
                raise DomainError("Invalid driver daily summary id.")
        if self.conn.execute(
            "SELECT 1 FROM packaging_types WHERE packaging_type_id = ?", (ptid,)
        ).fetchone() is None:
            raise DomainError(f"Packaging type {ptid} does not exist.")

        with immediate_tx(self.conn):
            cur = self.conn.execute(
                """
                INSERT INTO packaging_logs(driver_id, log_date, packaging_type_id, quantity_out,
                                           quantity_returned, shrinkage_override,
                                           driver_daily_summary_id, area_manager_id, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    did, log_date, ptid,
                    None if quantity_out is None else float(quantity_out),
                    None if quantity_returned is None else float(quantity_returned),
                    None if shrinkage_override is None else float(shrinkage_override),
                    sid, area_manager_id, notes if non_empty(notes) else None,
                ),
            )
            log_id = int(cur.lastrowid)
        return self.list_packaging_logs(log_id=log_id)[0]

    def list_packaging_logs(
        self,
        *,
        driver_id: int | None = None,
        date: str | None = None,
        packaging_type_id: int | None = None,
        log_id: int | None = None,
    ) -> list[dict]:
        where: list[str] = []
        params: list = []
        if log_id is not None:
            where.append("pl.log_id = ?")
            params.append(log_id)
        if driver_id is not None:
            where.append("pl.driver_id = ?")
            params.append(driver_id)
        if date:
            where.append("pl.log_date = ?")
            params.append(date)
        if packaging_type_id is not None:
            where.append("pl.packaging_type_id = ?")
            params.append(packaging_type_id)
        sql = """
          SELECT pl.log_id, pl.driver_id,
                 TRIM(d.first_name || ' ' || d.last_name) AS driver_name,
                 pl.log_date, pl.packaging_type_id, pt.type_name AS packaging_type_name,
                 CAST(pl.quantity_out AS REAL)       AS quantity_out,
                 CAST(pl.quantity_returned AS REAL)  AS quantity_returned,
                 CAST(pl.shrinkage_override AS REAL) AS shrinkage_override,
                 pl.driver_daily_summary_id, pl.area_manager_id,
                 u.username AS area_manager_name, pl.notes
          FROM packaging_logs pl
          JOIN drivers d          ON d.driver_id = pl.driver_id
          JOIN packaging_types pt ON pt.packaging_type_id = pl.packaging_type_id
          LEFT JOIN users u       ON u.user_id = pl.area_manager_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY pl.log_date DESC, pl.log_id"
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    # ---- Reference data ---------------------------------------------------------

    def list_loss_reasons(self) -> list[dict]:
        rows = self.conn.execute(
            "SELECT loss_reason_id, reason_description FROM loss_reasons "
            "WHERE is_active = 1 ORDER BY reason_description"
        ).fetchall()
        return [dict(r) for r in rows]

    def list_packaging_types(self) -> list[dict]:
        rows = self.conn.execute(
            "SELECT packaging_type_id, type_name, description FROM packaging_types "
            "WHERE is_active = 1 ORDER BY type_name"
        ).fetchall()
        return [dict(r) for r in rows]
