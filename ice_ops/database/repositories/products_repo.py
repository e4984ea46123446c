from __future__ import annotations

from dataclasses import dataclass
import sqlite3


@dataclass
class Product:
    product_id: int
    product_name: str
    default_unit_price: float
    unit_of_measure: str
    is_active: int


class ProductsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def list_products(self, active_only: bool = True) -> list[Product]:
        sql = (
            "SELECT product_id, product_name, CAST(default_unit_price AS REAL) AS default_unit_price, "
            "unit_of_measure, is_active FROM products"
        )
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY product_name, product_id"
        return [Product(**r) for r in self.conn.execute(sql).fetchall()]

    def get(self, product_id: int) -> Product | None:
        row = self.conn.execute(
            "SELECT product_id, product_name, CAST(default_unit_price AS REAL) AS default_unit_price, "
            "unit_of_measure, is_active FROM products WHERE product_id = ?",
            (product_id,),
        ).fetchone()
        return Product(**row) if row else None

    def exists(self, product_id: int) -> bool:
        return self.conn.execute(
            "SELECT 1 FROM products WHERE product_id = ?", (product_id,)
        ).fetchone() is not None
