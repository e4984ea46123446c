from __future__ import annotations

from dataclasses import dataclass
import sqlite3

from ...utils.helpers import round_money, today_str
from ...utils.validators import is_iso_date, is_non_negative_number, try_parse_float
from ..tx import immediate_tx
from .errors import DomainError, NotFoundError


@dataclass
class Customer:
    customer_id: int
    customer_name: str
    phone: str | None
    address: str | None
    is_active: int


class CustomersRepo:
    """
    Customers as seen by the driver ledger: existence/active checks and
    customer-specific price history. Customer CRUD lives elsewhere.
    """

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---- Queries ----------------------------------------------------------

    def get(self, customer_id: int) -> Customer | None:
        row = self.conn.execute(
            "SELECT customer_id, customer_name, phone, address, is_active "
            "FROM customers WHERE customer_id = ?",
            (customer_id,),
        ).fetchone()
        return Customer(**row) if row else None

    def is_active(self, customer_id: int) -> bool:
        """False for unknown customers as well as deactivated ones."""
        row = self.conn.execute(
            "SELECT is_active FROM customers WHERE customer_id = ?", (customer_id,)
        ).fetchone()
        return bool(row and row["is_active"])

    # ---- Prices -----------------------------------------------------------

    def latest_price(self, customer_id: int, product_id: int) -> float | None:
        row = self.conn.execute(
            """
            SELECT CAST(unit_price AS REAL) AS unit_price
            FROM customer_prices
            WHERE customer_id = ? AND product_id = ?
            ORDER BY effective_date DESC, price_id DESC
            LIMIT 1
            """,
            (customer_id, product_id),
        ).fetchone()
        return None if row is None else float(row["unit_price"])

    def resolve_unit_price(self, customer_id: int, product_id: int, explicit=None) -> float:
        """
        Price for one sale line:
          1. a positive explicit price as entered,
          2. else the customer's most recent price for the product,
          3. else the product default,
          4. else 0.
        An explicit 0 falls through to the lookups.
        """
        ok, val = try_parse_float(explicit)
        if ok and val is not None and val > 0:
            return round_money(val)
        price = self.latest_price(customer_id, product_id)
        if price is not None:
            return round_money(price)
        row = self.conn.execute(
            "SELECT CAST(default_unit_price AS REAL) AS p FROM products WHERE product_id = ?",
            (product_id,),
        ).fetchone()
        if row is None or row["p"] is None:
            return 0.0
        return round_money(row["p"])

    def list_prices(self, customer_id: int) -> list[dict]:
        """
        Effective price per active product for a customer. `is_custom` tells
        whether it comes from the customer's price history or the product
        default.
        """
        if self.get(customer_id) is None:
            raise NotFoundError(f"Customer {customer_id} not found.")
        rows = self.conn.execute(
            """
            SELECT p.product_id, p.product_name, p.unit_of_measure,
                   CAST(p.default_unit_price AS REAL) AS default_unit_price,
                   (SELECT CAST(cp.unit_price AS REAL) FROM customer_prices cp
                     WHERE cp.customer_id = ? AND cp.product_id = p.product_id
                     ORDER BY cp.effective_date DESC, cp.price_id DESC LIMIT 1) AS custom_price,
                   (SELECT cp.effective_date FROM customer_prices cp
                     WHERE cp.customer_id = ? AND cp.product_id = p.product_id
                     ORDER BY cp.effective_date DESC, cp.price_id DESC LIMIT 1) AS effective_date
            FROM products p
            WHERE p.is_active = 1
            ORDER BY p.product_name, p.product_id
            """,
            (customer_id, customer_id),
        ).fetchall()
        out = []
        for r in rows:
            d = dict(r)
            d["is_custom"] = d["custom_price"] is not None
            d["unit_price"] = d["custom_price"] if d["is_custom"] else d["default_unit_price"]
            out.append(d)
        return out

    def set_price(
        self,
        customer_id: int,
        product_id: int,
        unit_price,
        *,
        effective_date: str | None = None,
        reason: str | None = None,
        set_by_user_id: int | None = None,
    ) -> dict:
        """Append a price to the customer's history and return the new row."""
        if not is_non_negative_number(unit_price):
            raise DomainError("Unit price must be a non-negative number.")
        effective_date = effective_date or today_str()
        if not is_iso_date(effective_date):
            raise DomainError("Effective date must be YYYY-MM-DD.")
        if self.get(customer_id) is None:
            raise NotFoundError(f"Customer {customer_id} not found.")
        if self.conn.execute(
            "SELECT 1 FROM products WHERE product_id = ?", (product_id,)
        ).fetchone() is None:
            raise NotFoundError(f"Product {product_id} not found.")

        with immediate_tx(self.conn):
            cur = self.conn.execute(
                """
                INSERT INTO customer_prices(customer_id, product_id, unit_price, effective_date, reason, set_by_user_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (customer_id, product_id, round_money(unit_price), effective_date, reason, set_by_user_id),
            )
            price_id = int(cur.lastrowid)
        return dict(
            self.conn.execute(
                "SELECT price_id, customer_id, product_id, CAST(unit_price AS REAL) AS unit_price, "
                "effective_date, reason, set_by_user_id FROM customer_prices WHERE price_id = ?",
                (price_id,),
            ).fetchone()
        )
