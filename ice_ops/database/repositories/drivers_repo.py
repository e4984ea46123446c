from __future__ import annotations

from dataclasses import dataclass
import sqlite3


@dataclass
class Driver:
    driver_id: int
    first_name: str
    last_name: str
    phone: str | None
    is_active: int

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DriversRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def get(self, driver_id: int) -> Driver | None:
        row = self.conn.execute(
            "SELECT driver_id, first_name, last_name, phone, is_active "
            "FROM drivers WHERE driver_id = ?",
            (driver_id,),
        ).fetchone()
        return Driver(**row) if row else None

    def exists(self, driver_id: int) -> bool:
        return self.conn.execute(
            "SELECT 1 FROM drivers WHERE driver_id = ?", (driver_id,)
        ).fetchone() is not None
