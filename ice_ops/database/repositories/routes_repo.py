from __future__ import annotations

import sqlite3
from typing import Iterable

from ..tx import immediate_tx
from .errors import DomainError, NotFoundError


class RoutesRepo:
    """
    Delivery routes and the customers served on each route.

    `customer_route_assignments` doubles as a sales marker: the batch sales
    path bumps `last_sale_date` and `total_sales_count` whenever a customer
    buys on a route.
    """

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def exists(self, route_id: int) -> bool:
        return self.conn.execute(
            "SELECT 1 FROM delivery_routes WHERE route_id = ?", (route_id,)
        ).fetchone() is not None

    def _require(self, route_id: int) -> None:
        if not self.exists(route_id):
            raise NotFoundError(f"Route {route_id} not found.")

    # ---- Route customers ----------------------------------------------------

    def list_customers(self, route_id: int) -> list[dict]:
        """Active assignments for a route, in delivery order."""
        self._require(route_id)
        rows = self.conn.execute(
            """
            SELECT a.assignment_id, a.customer_id, c.customer_name, c.phone, c.address,
                   a.route_sequence, a.last_sale_date, a.total_sales_count
            FROM customer_route_assignments a
            JOIN customers c ON c.customer_id = a.customer_id
            WHERE a.route_id = ? AND a.is_active = 1 AND c.is_active = 1
            ORDER BY a.route_sequence, c.customer_name
            """,
            (route_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def add_customer(
        self,
        route_id: int,
        customer_id: int,
        *,
        route_sequence: int | None = None,
        created_by: int | None = None,
    ) -> dict:
        """
        Add (or re-activate) a customer on a route. Without an explicit
        sequence the customer goes to the end of the list.
        """
        self._require(route_id)
        if self.conn.execute(
            "SELECT 1 FROM customers WHERE customer_id = ?", (customer_id,)
        ).fetchone() is None:
            raise NotFoundError(f"Customer {customer_id} not found.")

        with immediate_tx(self.conn):
            if route_sequence is None:
                row = self.conn.execute(
                    "SELECT COALESCE(MAX(route_sequence), 0) + 1 AS nxt "
                    "FROM customer_route_assignments WHERE route_id = ? AND is_active = 1",
                    (route_id,),
                ).fetchone()
                route_sequence = int(row["nxt"])
            self.conn.execute(
                """
                INSERT INTO customer_route_assignments(customer_id, route_id, route_sequence, created_by)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(customer_id, route_id) DO UPDATE SET
                    is_active = 1,
                    route_sequence = excluded.route_sequence,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (customer_id, route_id, route_sequence, created_by),
            )
        return dict(
            self.conn.execute(
                "SELECT * FROM customer_route_assignments WHERE customer_id = ? AND route_id = ?",
                (customer_id, route_id),
            ).fetchone()
        )

    def remove_customer(self, route_id: int, customer_id: int) -> None:
        """Soft-remove: the assignment keeps its sales history."""
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                "UPDATE customer_route_assignments SET is_active = 0, updated_at = CURRENT_TIMESTAMP "
                "WHERE route_id = ? AND customer_id = ? AND is_active = 1",
                (route_id, customer_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(
                    f"Customer {customer_id} is not assigned to route {route_id}."
                )

    def reorder_customers(self, route_id: int, customer_ids: Iterable[int]) -> list[dict]:
        self._require(route_id)
        ordered = list(customer_ids)
        if len(set(ordered)) != len(ordered):
            raise DomainError("Customer order contains duplicates.")
        with immediate_tx(self.conn):
            for seq, cid in enumerate(ordered, start=1):
                cur = self.conn.execute(
                    "UPDATE customer_route_assignments SET route_sequence = ?, updated_at = CURRENT_TIMESTAMP "
                    "WHERE route_id = ? AND customer_id = ? AND is_active = 1",
                    (seq, route_id, cid),
                )
                if cur.rowcount == 0:
                    raise DomainError(f"Customer {cid} is not assigned to route {route_id}.")
        return self.list_customers(route_id)

    # ---- Sales marker -------------------------------------------------------

    def record_sale_marker(self, route_id: int, customer_id: int, sale_date: str) -> None:
        """
        Upsert the assignment for (customer, route) and count one sale.
        Runs inside the caller's transaction.
        """
        self.conn.execute(
            """
            INSERT INTO customer_route_assignments(customer_id, route_id, last_sale_date, total_sales_count)
            VALUES (?, ?, ?, 1)
            ON CONFLICT(customer_id, route_id) DO UPDATE SET
                last_sale_date = excluded.last_sale_date,
                total_sales_count = customer_route_assignments.total_sales_count + 1,
                is_active = 1,
                updated_at = CURRENT_TIMESTAMP
            """,
            (customer_id, route_id, sale_date),
        )
