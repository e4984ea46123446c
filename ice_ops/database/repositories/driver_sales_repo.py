"""
Driver sales: the day's batch submission plus single-sale maintenance.

`submit_daily_sales` is a full-day replace: it wipes every sale of the
summary and re-inserts the submitted set, so re-sending the same payload
leaves the ledger unchanged. Bad rows inside an otherwise valid batch are
skipped (and reported in the result) instead of failing the batch.

Every writer here ends with DriverSummariesRepo.recompute_totals() inside
the same transaction so the summary buckets always match the sales.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
import sqlite3
from typing import Mapping, Optional

from ...constants import PAYMENT_CASH, PAYMENT_TYPES, TRANSACTION_TYPES, TX_SALE
from ...utils.helpers import fmt_money, round_money
from ...utils.loggers import get_logger
from ...utils.validators import is_optional_text, try_parse_float, try_parse_int
from ..tx import immediate_tx
from .customers_repo import CustomersRepo
from .driver_summaries_repo import DriverSummariesRepo
from .errors import DomainError, NotFoundError
from .products_repo import ProductsRepo
from .routes_repo import RoutesRepo

_log = get_logger(__name__)

ACCEPTED = "accepted"
SKIPPED = "skipped"

_UNSET = object()


# ---------------------------------------------------------------------
# Batch result types
# ---------------------------------------------------------------------

@dataclass
class ItemRowResult:
    index: int
    product_id: Optional[int]
    status: str
    reason: Optional[str] = None
    quantity_sold: Optional[float] = None
    unit_price: Optional[float] = None
    transaction_type: Optional[str] = None
    line_total: Optional[float] = None


@dataclass
class SaleRowResult:
    index: int
    customer_id: Optional[int]
    status: str
    reason: Optional[str] = None
    sale_id: Optional[int] = None
    payment_type: Optional[str] = None
    total_sale_amount: float = 0.0
    items: list[ItemRowResult] = field(default_factory=list)


@dataclass
class BatchSalesResult:
    summary_id: int
    processed_sales: int = 0
    total_amount: float = 0.0
    rows: list[SaleRowResult] = field(default_factory=list)

    @property
    def skipped_sales(self) -> int:
        return sum(1 for r in self.rows if r.status == SKIPPED)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["skipped_sales"] = self.skipped_sales
        return d


@dataclass
class _Line:
    product_id: int
    quantity_sold: float
    unit_price: float
    transaction_type: str

    @property
    def line_total(self) -> float:
        if self.transaction_type != TX_SALE:
            return 0.0
        return round_money(self.quantity_sold * self.unit_price)


# ---------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------

class DriverSalesRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.summaries = DriverSummariesRepo(conn)
        self.customers = CustomersRepo(conn)
        self.routes = RoutesRepo(conn)
        self.products = ProductsRepo(conn)

    # ---- internal helpers ---------------------------------------------------

    def _check_item(self, customer_id: int, idx: int, item) -> tuple[Optional[_Line], ItemRowResult]:
        """Validate one sale line; returns (line, result) or (None, skipped result)."""
        if not isinstance(item, Mapping):
            return None, ItemRowResult(idx, None, SKIPPED, "invalid_item")
        ok, pid = try_parse_int(item.get("product_id"))
        pid = pid if ok else None
        ok, qty = try_parse_float(item.get("quantity_sold"))
        if not ok or qty <= 0:
            return None, ItemRowResult(idx, pid, SKIPPED, "invalid_quantity")
        if pid is None or not self.products.exists(pid):
            return None, ItemRowResult(idx, pid, SKIPPED, "unknown_product")
        tx_type = item.get("transaction_type") or TX_SALE
        if tx_type not in TRANSACTION_TYPES:
            return None, ItemRowResult(idx, pid, SKIPPED, "invalid_transaction_type")
        price = self.customers.resolve_unit_price(customer_id, pid, item.get("unit_price"))
        line = _Line(pid, qty, price, tx_type)
        return line, ItemRowResult(
            idx, pid, ACCEPTED,
            quantity_sold=qty, unit_price=price, transaction_type=tx_type, line_total=line.line_total,
        )

    def _strict_lines(self, customer_id: int, items) -> list[_Line]:
        if not isinstance(items, list) or not items:
            raise DomainError("At least one sale item is required.")
        lines = []
        for idx, item in enumerate(items):
            line, res = self._check_item(customer_id, idx, item)
            if line is None:
                raise DomainError(f"Sale item {idx + 1} is invalid: {res.reason}.")
            lines.append(line)
        return lines

    def _insert_sale(self, *, summary_id: int, customer_id: int, payment_type: str,
                     notes, area_manager_id, lines: list[_Line]) -> tuple[int, float]:
        total = round_money(sum(l.line_total for l in lines))
        cur = self.conn.execute(
            """
            INSERT INTO driver_sales(driver_daily_summary_id, customer_id, payment_type, notes,
                                     total_sale_amount, area_manager_logged_by_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (summary_id, customer_id, payment_type, notes, total, area_manager_id),
        )
        sale_id = int(cur.lastrowid)
        self._insert_items(sale_id, lines)
        return sale_id, total

    def _insert_items(self, sale_id: int, lines: list[_Line]) -> None:
        self.conn.executemany(
            """
            INSERT INTO driver_sale_items(driver_sale_id, product_id, quantity_sold,
                                          unit_price, transaction_type, line_total)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [(sale_id, l.product_id, l.quantity_sold, l.unit_price, l.transaction_type, l.line_total)
             for l in lines],
        )

    def _mark_route_sale(self, route_id, customer_id: int, sale_date: str) -> None:
        if route_id is None:
            return
        try:
            self.routes.record_sale_marker(route_id, customer_id, sale_date)
        except sqlite3.Error as e:
            _log.warning(
                "route marker not updated for customer %s on route %s: %s", customer_id, route_id, e
            )

    # ---- batch --------------------------------------------------------------

    def submit_daily_sales(
        self,
        summary_id,
        sales,
        *,
        area_manager_id: int | None = None,
        allow_reconciled: bool = False,
    ) -> BatchSalesResult:
        """
        Replace the whole day's sales of `summary_id` with `sales`.

        Each entry: {customer_id, payment_type='Cash', notes?, items: [
            {product_id, quantity_sold, unit_price?, transaction_type='Sale'}]}

        Entries with a missing/inactive customer, no items, or no valid item
        are skipped; invalid items are skipped individually. The returned
        BatchSalesResult says what happened to every row.
        """
        ok, sid = try_parse_int(summary_id)
        if not ok:
            raise DomainError("A valid driver_daily_summary_id is required.")
        if not isinstance(sales, list):
            raise DomainError("Sales data must be a list of sale records.")
        if not sales:
            raise DomainError("At least one sale record is required.")
        if not all(isinstance(s, Mapping) for s in sales):
            raise DomainError("Every sale record must be an object.")
        for idx, entry in enumerate(sales):
            if not is_optional_text(entry.get("notes")):
                raise DomainError(f"Sale record {idx + 1}: notes must be text.")

        result = BatchSalesResult(summary_id=sid)
        _log.info("batch sales BEGIN: summary=%s entries=%d", sid, len(sales))
        try:
            with immediate_tx(self.conn):
                summary = self.summaries.ensure_writable(sid, allow_reconciled=allow_reconciled)
                self.conn.execute("DELETE FROM driver_sales WHERE driver_daily_summary_id = ?", (sid,))

                for idx, entry in enumerate(sales):
                    row = self._process_entry(idx, entry, summary, area_manager_id)
                    result.rows.append(row)
                    if row.status == ACCEPTED:
                        result.processed_sales += 1
                        result.total_amount += row.total_sale_amount

                self.summaries.recompute_totals(sid)
        except Exception as e:
            _log.warning("batch sales ROLLBACK: summary=%s (%s)", sid, e)
            raise

        result.total_amount = round_money(result.total_amount)
        _log.info(
            "batch sales COMMIT: summary=%s processed=%d skipped=%d total=%s",
            sid, result.processed_sales, result.skipped_sales, fmt_money(result.total_amount),
        )
        return result

    def _process_entry(self, idx: int, entry: Mapping, summary: dict, area_manager_id) -> SaleRowResult:
        ok, cid = try_parse_int(entry.get("customer_id"))
        if not ok:
            _log.warning("sale %d skipped: missing customer id", idx)
            return SaleRowResult(idx, None, SKIPPED, "missing_customer")
        items = entry.get("items")
        if not isinstance(items, list) or not items:
            _log.warning("sale %d skipped: customer %s has no items", idx, cid)
            return SaleRowResult(idx, cid, SKIPPED, "no_items")
        if not self.customers.is_active(cid):
            _log.warning("sale %d skipped: customer %s is inactive or unknown", idx, cid)
            return SaleRowResult(idx, cid, SKIPPED, "inactive_customer")
        payment_type = entry.get("payment_type") or PAYMENT_CASH
        if payment_type not in PAYMENT_TYPES:
            _log.warning("sale %d skipped: invalid payment type %r", idx, payment_type)
            return SaleRowResult(idx, cid, SKIPPED, "invalid_payment_type")

        lines: list[_Line] = []
        item_rows: list[ItemRowResult] = []
        for j, item in enumerate(items):
            line, res = self._check_item(cid, j, item)
            item_rows.append(res)
            if line is None:
                _log.warning("sale %d item %d skipped: %s", idx, j, res.reason)
            else:
                lines.append(line)
        if not lines:
            _log.warning("sale %d skipped: no valid items for customer %s", idx, cid)
            return SaleRowResult(idx, cid, SKIPPED, "no_valid_items", items=item_rows)

        sale_id, total = self._insert_sale(
            summary_id=summary["summary_id"],
            customer_id=cid,
            payment_type=payment_type,
            notes=entry.get("notes"),
            area_manager_id=area_manager_id,
            lines=lines,
        )
        self._mark_route_sale(summary["route_id"], cid, summary["sale_date"])
        return SaleRowResult(
            idx, cid, ACCEPTED,
            sale_id=sale_id, payment_type=payment_type, total_sale_amount=total, items=item_rows,
        )

    # ---- single sales -------------------------------------------------------

    def create_sale(
        self,
        *,
        summary_id,
        customer_id,
        items,
        payment_type: str = PAYMENT_CASH,
        notes: str | None = None,
        area_manager_id: int | None = None,
        allow_reconciled: bool = False,
    ) -> dict:
        """Add one sale to a day. Unlike the batch path, any bad line is an error."""
        ok, sid = try_parse_int(summary_id)
        if not ok:
            raise DomainError("A valid driver_daily_summary_id is required.")
        ok, cid = try_parse_int(customer_id)
        if not ok:
            raise DomainError("A valid customer id is required.")
        if payment_type not in PAYMENT_TYPES:
            raise DomainError(f"Payment type must be one of: {', '.join(PAYMENT_TYPES)}.")
        if not is_optional_text(notes):
            raise DomainError("Notes must be text.")

        with immediate_tx(self.conn):
            self.summaries.ensure_writable(sid, allow_reconciled=allow_reconciled)
            if not self.customers.is_active(cid):
                raise DomainError(f"Customer {cid} is inactive or does not exist.")
            lines = self._strict_lines(cid, items)
            sale_id, _ = self._insert_sale(
                summary_id=sid,
                customer_id=cid,
                payment_type=payment_type,
                notes=notes,
                area_manager_id=area_manager_id,
                lines=lines,
            )
            self.summaries.recompute_totals(sid)
        return self.get_sale(sale_id)

    def update_sale(
        self,
        sale_id: int,
        *,
        payment_type: str | None = None,
        notes=_UNSET,
        items=None,
        customer_id=None,
        area_manager_id: int | None = None,
        allow_reconciled: bool = False,
    ) -> dict:
        """
        Partial update. When `items` is given the sale's lines are rebuilt
        and its cached total recalculated.
        """
        if payment_type is not None and payment_type not in PAYMENT_TYPES:
            raise DomainError(f"Payment type must be one of: {', '.join(PAYMENT_TYPES)}.")
        if notes is not _UNSET and not is_optional_text(notes):
            raise DomainError("Notes must be text.")

        with immediate_tx(self.conn):
            row = self.conn.execute(
                "SELECT sale_id, driver_daily_summary_id, customer_id, payment_type, notes "
                "FROM driver_sales WHERE sale_id = ?",
                (sale_id,),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Driver sale {sale_id} not found.")
            sid = row["driver_daily_summary_id"]
            self.summaries.ensure_writable(sid, allow_reconciled=allow_reconciled)

            cid = row["customer_id"]
            if customer_id is not None:
                ok, cid = try_parse_int(customer_id)
                if not ok or not self.customers.is_active(cid):
                    raise DomainError(f"Customer {customer_id} is inactive or does not exist.")

            self.conn.execute(
                """
                UPDATE driver_sales
                   SET customer_id = ?, payment_type = ?, notes = ?,
                       area_manager_logged_by_id = COALESCE(?, area_manager_logged_by_id)
                 WHERE sale_id = ?
                """,
                (
                    cid,
                    payment_type or row["payment_type"],
                    row["notes"] if notes is _UNSET else notes,
                    area_manager_id,
                    sale_id,
                ),
            )
            if items is not None:
                lines = self._strict_lines(cid, items)
                self.conn.execute("DELETE FROM driver_sale_items WHERE driver_sale_id = ?", (sale_id,))
                self._insert_items(sale_id, lines)
                self.conn.execute(
                    "UPDATE driver_sales SET total_sale_amount = ? WHERE sale_id = ?",
                    (round_money(sum(l.line_total for l in lines)), sale_id),
                )
            self.summaries.recompute_totals(sid)
        return self.get_sale(sale_id)

    def delete_sale(self, sale_id: int, *, allow_reconciled: bool = False) -> None:
        with immediate_tx(self.conn):
            row = self.conn.execute(
                "SELECT driver_daily_summary_id FROM driver_sales WHERE sale_id = ?", (sale_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Driver sale {sale_id} not found.")
            sid = row["driver_daily_summary_id"]
            self.summaries.ensure_writable(sid, allow_reconciled=allow_reconciled)
            self.conn.execute("DELETE FROM driver_sales WHERE sale_id = ?", (sale_id,))
            self.summaries.recompute_totals(sid)
        _log.info("driver sale %s deleted from summary %s", sale_id, sid)

    # ---- reads ----------------------------------------------------------------

    def list_items(self, sale_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT i.item_id, i.product_id, p.product_name,
                   CAST(i.quantity_sold AS REAL) AS quantity_sold,
                   CAST(i.unit_price AS REAL)    AS unit_price,
                   i.transaction_type,
                   CAST(i.line_total AS REAL)    AS line_total
            FROM driver_sale_items i
            JOIN products p ON p.product_id = i.product_id
            WHERE i.driver_sale_id = ?
            ORDER BY i.item_id
            """,
            (sale_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def _sales(self, where: str, params: tuple, order: str) -> list[dict]:
        rows = self.conn.execute(
            f"""
            SELECT ds.sale_id, ds.driver_daily_summary_id, ds.customer_id, c.customer_name,
                   ds.payment_type, ds.notes,
                   CAST(ds.total_sale_amount AS REAL) AS total_sale_amount,
                   ds.area_manager_logged_by_id, ds.sale_timestamp, ds.updated_at
            FROM driver_sales ds
            JOIN customers c ON c.customer_id = ds.customer_id
            WHERE {where}
            ORDER BY {order}
            """,
            params,
        ).fetchall()
        out = []
        for r in rows:
            d = dict(r)
            d["items"] = self.list_items(d["sale_id"])
            out.append(d)
        return out

    def get_sale(self, sale_id: int) -> dict | None:
        found = self._sales("ds.sale_id = ?", (sale_id,), "ds.sale_id")
        return found[0] if found else None

    def list_sales(self, summary_id: int) -> list[dict]:
        return self._sales("ds.driver_daily_summary_id = ?", (summary_id,), "ds.sale_timestamp, ds.sale_id")

    def list_sales_for_edit(self, summary_id: int) -> dict:
        """The day's sales grouped for the entry grid, by customer name."""
        summary = self.summaries.require(summary_id)
        return {
            "summary": summary,
            "sales": self._sales("ds.driver_daily_summary_id = ?", (summary_id,), "c.customer_name, ds.sale_id"),
        }
