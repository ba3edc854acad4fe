from __future__ import annotations

from infra.db.cellar_db import lastrowid

from .base import BaseRepo


class LotsRepo(BaseRepo):
    def get_lot(self, lot_id: int) -> dict | None:
        return self._one(
            """
            SELECT id, cellar_id, wine_name, producer_name, vintage, color, quantity
            FROM lots
            WHERE id = ?
            """,
            [lot_id],
        )

    def list_lots(self, cellar_id: int | None = None) -> list[dict]:
        """Lots of a cellar (or all lots when cellar_id is None)."""
        if cellar_id is None:
            return self._all(
                """
                SELECT id, cellar_id, wine_name, producer_name, vintage, color, quantity
                FROM lots
                ORDER BY wine_name COLLATE NOCASE, vintage, id
                """
            )
        return self._all(
            """
            SELECT id, cellar_id, wine_name, producer_name, vintage, color, quantity
            FROM lots
            WHERE cellar_id = ?
            ORDER BY wine_name COLLATE NOCASE, vintage, id
            """,
            [cellar_id],
        )

    def insert_lot(
        self,
        *,
        cellar_id: int | None,
        wine_name: str,
        quantity: int,
        producer_name: str = "",
        vintage: int | None = None,
        color: str | None = None,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO lots(cellar_id, wine_name, producer_name, vintage, color, quantity)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (cellar_id, wine_name, producer_name, vintage, color, quantity),
        )
        return lastrowid(cur)

    def update_quantity(self, lot_id: int, quantity: int) -> int:
        return self._write("UPDATE lots SET quantity = ? WHERE id = ?", [quantity, lot_id])
