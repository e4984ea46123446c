"""
Loading log recorder.

A loading batch is one trip to the plant: a driver takes several products
at once. Each product becomes one `loading_logs` row and every row of the
batch shares `load_batch_id`, a uuid4 minted when the batch is first
recorded. Rows never carry a summary id; the reconciliation joins them to a
day through `load_date`, the business-timezone calendar date of
`load_timestamp`.
"""
from __future__ import annotations

from datetime import datetime, timezone
import sqlite3
from typing import Any, Iterable, Mapping
import uuid

from ...constants import DEFAULT_TIMEZONE, LOAD_TYPES
from ...utils.helpers import business_date, parse_timestamp
from ...utils.loggers import get_logger
from ...utils.validators import is_optional_text, non_empty, try_parse_float, try_parse_int
from ..tx import immediate_tx
from .drivers_repo import DriversRepo
from .errors import DomainError, NotFoundError
from .products_repo import ProductsRepo
from .routes_repo import RoutesRepo

_log = get_logger(__name__)

_UNSET: Any = object()


def group_by_batch(rows: Iterable[Mapping]) -> list[dict]:
    """
    Fold flat loading-log rows (as returned by LoadingLogsRepo.list_logs)
    into one entry per batch, preserving the incoming order.
    """
    batches: dict[str, dict] = {}
    for r in rows:
        key = r["load_batch_id"]
        b = batches.get(key)
        if b is None:
            b = batches[key] = {
                "load_batch_id": key,
                "driver_id": r["driver_id"],
                "driver_name": r.get("driver_name"),
                "route_id": r["route_id"],
                "route_name": r.get("route_name"),
                "load_type": r["load_type"],
                "load_timestamp": r["load_timestamp"],
                "load_date": r["load_date"],
                "area_manager_id": r["area_manager_id"],
                "area_manager_name": r.get("area_manager_name"),
                "notes": r["notes"],
                "items": [],
                "total_quantity": 0.0,
            }
        b["items"].append(
            {
                "loading_log_id": r["loading_log_id"],
                "product_id": r["product_id"],
                "product_name": r.get("product_name"),
                "quantity_loaded": r["quantity_loaded"],
            }
        )
        b["total_quantity"] += float(r["quantity_loaded"])
    return list(batches.values())


class LoadingLogsRepo:
    def __init__(self, conn: sqlite3.Connection, *, tz_name: str = DEFAULT_TIMEZONE):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.tz_name = tz_name
        self.drivers = DriversRepo(conn)
        self.products = ProductsRepo(conn)
        self.routes = RoutesRepo(conn)

    # ---- Validation ---------------------------------------------------------

    def _clean_items(self, items) -> list[tuple[int, float]]:
        if not isinstance(items, list) or not items:
            raise DomainError("At least one product item is required.")
        out: list[tuple[int, float]] = []
        for it in items:
            if not isinstance(it, Mapping):
                raise DomainError("Each item must be an object with product_id and quantity_loaded.")
            ok, pid = try_parse_int(it.get("product_id"))
            if not ok or pid <= 0:
                raise DomainError("Each item must have a valid product id.")
            ok, qty = try_parse_float(it.get("quantity_loaded"))
            if not ok or qty <= 0:
                raise DomainError(f"Quantity loaded for product {pid} must be a positive number.")
            if not self.products.exists(pid):
                raise DomainError(f"Product {pid} does not exist.")
            out.append((pid, qty))
        return out

    def _check_load_type(self, load_type: str) -> str:
        if load_type not in LOAD_TYPES:
            raise DomainError(f"Load type must be one of: {', '.join(LOAD_TYPES)}.")
        return load_type

    def _check_route(self, route_id) -> int | None:
        if route_id is None or route_id == "":
            return None
        ok, rid = try_parse_int(route_id)
        if not ok:
            raise DomainError("Invalid route id.")
        if not self.routes.exists(rid):
            raise DomainError(f"Route {rid} does not exist.")
        return rid

    def _insert_rows(self, *, batch_id: str, driver_id: int, route_id, load_type: str,
                     load_timestamp: str, load_date: str, area_manager_id, notes,
                     items: list[tuple[int, float]]) -> None:
        self.conn.executemany(
            """
            INSERT INTO loading_logs (
                load_batch_id, driver_id, route_id, product_id, quantity_loaded,
                load_type, load_timestamp, load_date, area_manager_id, notes
            ) VALUES (?,?,?,?,?,?,?,?,?,?)
            """,
            [
                (batch_id, driver_id, route_id, pid, qty, load_type,
                 load_timestamp, load_date, area_manager_id, notes)
                for pid, qty in items
            ],
        )

    # ---- Writes ------------------------------------------------------------

    def record_batch(
        self,
        *,
        driver_id,
        items,
        load_type: str = "initial",
        load_timestamp=None,
        route_id=None,
        notes: str | None = None,
        area_manager_id: int | None = None,
    ) -> dict:
        """
        Record one loading batch and return it (with its new load_batch_id).
        Nothing is written if any item is invalid.
        """
        ok, did = try_parse_int(driver_id)
        if not ok or did <= 0:
            raise DomainError("A valid driver id is required.")
        if not is_optional_text(notes):
            raise DomainError("Notes must be text.")
        cleaned = self._clean_items(items)
        self._check_load_type(load_type)
        try:
            ts = parse_timestamp(load_timestamp, self.tz_name) if load_timestamp else datetime.now(timezone.utc)
        except ValueError as e:
            raise DomainError("Invalid load_timestamp format.") from e
        if not self.drivers.exists(did):
            raise DomainError(f"Driver {did} does not exist.")
        rid = self._check_route(route_id)

        batch_id = str(uuid.uuid4())
        ts_text = ts.isoformat(timespec="seconds")
        with immediate_tx(self.conn):
            self._insert_rows(
                batch_id=batch_id,
                driver_id=did,
                route_id=rid,
                load_type=load_type,
                load_timestamp=ts_text,
                load_date=business_date(ts, self.tz_name),
                area_manager_id=area_manager_id,
                notes=notes if non_empty(notes) else None,
                items=cleaned,
            )
        _log.info("loading batch %s recorded: driver=%s items=%d", batch_id, did, len(cleaned))
        return self.get_batch(batch_id)

    def update_batch(
        self,
        load_batch_id: str,
        *,
        items,
        route_id=_UNSET,
        load_type: str | None = None,
        notes=_UNSET,
        area_manager_id: int | None = None,
    ) -> dict:
        """
        Replace every row of a batch with `items`.

        The batch keeps its id, driver and load time (so it stays on the same
        business day). Route, load type and notes keep their current values
        unless passed explicitly.
        """
        try:
            uuid.UUID(str(load_batch_id))
        except ValueError as e:
            raise DomainError("Invalid batch id format.") from e
        existing = self.conn.execute(
            "SELECT driver_id, route_id, load_type, load_timestamp, load_date, notes, area_manager_id "
            "FROM loading_logs WHERE load_batch_id = ? ORDER BY loading_log_id LIMIT 1",
            (load_batch_id,),
        ).fetchone()
        if existing is None:
            raise NotFoundError(f"Loading batch {load_batch_id} not found.")

        if notes is not _UNSET and not is_optional_text(notes):
            raise DomainError("Notes must be text.")
        cleaned = self._clean_items(items)
        new_type = self._check_load_type(load_type) if load_type else existing["load_type"]
        new_route = existing["route_id"] if route_id is _UNSET else self._check_route(route_id)
        new_notes = existing["notes"] if notes is _UNSET else (notes if non_empty(notes) else None)

        with immediate_tx(self.conn):
            self.conn.execute("DELETE FROM loading_logs WHERE load_batch_id = ?", (load_batch_id,))
            self._insert_rows(
                batch_id=load_batch_id,
                driver_id=existing["driver_id"],
                route_id=new_route,
                load_type=new_type,
                load_timestamp=existing["load_timestamp"],
                load_date=existing["load_date"],
                area_manager_id=area_manager_id if area_manager_id is not None else existing["area_manager_id"],
                notes=new_notes,
                items=cleaned,
            )
        _log.info("loading batch %s replaced: items=%d", load_batch_id, len(cleaned))
        return self.get_batch(load_batch_id)

    # ---- Reads -------------------------------------------------------------

    def list_logs(
        self,
        *,
        driver_id: int | None = None,
        date: str | None = None,
        driver_name: str | None = None,
        route_id: int | None = None,
        load_type: str | None = None,
        load_batch_id: str | None = None,
    ) -> list[dict]:
        where: list[str] = []
        params: list = []
        if driver_id is not None:
            where.append("ll.driver_id = ?")
            params.append(driver_id)
        if date:
            where.append("ll.load_date = ?")
            params.append(date)
        if non_empty(driver_name):
            where.append("(d.first_name || ' ' || d.last_name) LIKE ?")
            params.append(f"%{driver_name.strip()}%")
        if route_id is not None:
            where.append("ll.route_id = ?")
            params.append(route_id)
        if load_type:
            where.append("ll.load_type = ?")
            params.append(load_type)
        if load_batch_id:
            where.append("ll.load_batch_id = ?")
            params.append(load_batch_id)

        sql = """
          SELECT ll.loading_log_id, ll.load_batch_id, ll.driver_id,
                 TRIM(d.first_name || ' ' || d.last_name) AS driver_name,
                 ll.route_id, r.route_name, ll.product_id, p.product_name,
                 CAST(ll.quantity_loaded AS REAL) AS quantity_loaded,
                 ll.load_type, ll.load_timestamp, ll.load_date,
                 ll.area_manager_id, u.username AS area_manager_name, ll.notes
          FROM loading_logs ll
          JOIN drivers d              ON d.driver_id = ll.driver_id
          JOIN products p             ON p.product_id = ll.product_id
          LEFT JOIN delivery_routes r ON r.route_id = ll.route_id
          LEFT JOIN users u           ON u.user_id = ll.area_manager_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY ll.load_timestamp DESC, ll.load_batch_id DESC, ll.loading_log_id ASC"
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def get_batch(self, load_batch_id: str) -> dict | None:
        grouped = group_by_batch(self.list_logs(load_batch_id=load_batch_id))
        if not grouped:
            return None
        batch = grouped[0]
        batch["items_count"] = len(batch["items"])
        return batch
