from __future__ import annotations

from infra.db.cellar_db import lastrowid

from .base import BaseRepo


class PlacementsRepo(BaseRepo):
    # ------------------------------------------------------------------ slots (grid racks)
    def get_slot(self, rack_id: int, row: int, col: int, depth_position: int) -> dict | None:
        return self._one(
            """
            SELECT s.id, s.rack_id, s.row_index, s.col_index, s.depth_position, s.lot_id,
                   l.wine_name, l.producer_name, l.vintage, l.color AS wine_color
            FROM slots s
            LEFT JOIN lots l ON l.id = s.lot_id
            WHERE s.rack_id = ? AND s.row_index = ? AND s.col_index = ? AND s.depth_position = ?
            """,
            [rack_id, row, col, depth_position],
        )

    def list_slots(self, rack_id: int) -> list[dict]:
        """
        All slots of a rack, empty ones included, with display fields from the
        local lots table when the lot is known there.
        """
        return self._all(
            """
            SELECT s.rack_id,
                   s.row_index,
                   s.col_index,
                   s.depth_position,
                   s.lot_id,
                   l.wine_name,
                   l.producer_name,
                   l.vintage,
                   l.color AS wine_color
            FROM slots s
            LEFT JOIN lots l ON l.id = s.lot_id
            WHERE s.rack_id = ?
            ORDER BY s.row_index, s.col_index, s.depth_position
            """,
            [rack_id],
        )

    def occupy_slot(
        self, rack_id: int, row: int, col: int, depth_position: int, lot_id: int
    ) -> int:
        """Point an empty slot at a lot; returns 0 if the slot was not empty."""
        return self._write(
            """
            UPDATE slots
            SET lot_id = ?, placed_at = CURRENT_TIMESTAMP
            WHERE rack_id = ? AND row_index = ? AND col_index = ? AND depth_position = ?
              AND lot_id IS NULL
            """,
            (lot_id, rack_id, row, col, depth_position),
        )

    def clear_slot(self, rack_id: int, row: int, col: int, depth_position: int) -> int:
        return self._write(
            """
            UPDATE slots
            SET lot_id = NULL, placed_at = NULL
            WHERE rack_id = ? AND row_index = ? AND col_index = ? AND depth_position = ?
              AND lot_id IS NOT NULL
            """,
            (rack_id, row, col, depth_position),
        )

    # ------------------------------------------------------------------ bin bottles
    def count_in_cell(self, rack_id: int, row: int, col: int) -> int:
        return self._count(
            """
            SELECT COUNT(*) AS n
            FROM bin_bottles
            WHERE rack_id = ? AND bin_row = ? AND bin_col = ?
            """,
            [rack_id, row, col],
        )

    def insert_bin_bottle(self, rack_id: int, row: int, col: int, lot_id: int) -> int:
        cur = self.conn.execute(
            "INSERT INTO bin_bottles(rack_id, bin_row, bin_col, lot_id) VALUES (?, ?, ?, ?)",
            (rack_id, row, col, lot_id),
        )
        return lastrowid(cur)

    def get_bin_bottle(self, bin_bottle_id: int) -> dict | None:
        return self._one(
            """
            SELECT b.id, b.rack_id, b.bin_row, b.bin_col, b.lot_id,
                   l.wine_name, l.producer_name, l.vintage, l.color AS wine_color
            FROM bin_bottles b
            LEFT JOIN lots l ON l.id = b.lot_id
            WHERE b.id = ?
            """,
            [bin_bottle_id],
        )

    def list_bin_bottles(self, rack_id: int) -> list[dict]:
        return self._all(
            """
            SELECT b.id, b.rack_id, b.bin_row, b.bin_col, b.lot_id,
                   l.wine_name, l.producer_name, l.vintage, l.color AS wine_color
            FROM bin_bottles b
            LEFT JOIN lots l ON l.id = b.lot_id
            WHERE b.rack_id = ?
            ORDER BY b.bin_row, b.bin_col, b.id
            """,
            [rack_id],
        )

    def delete_bin_bottle(self, bin_bottle_id: int) -> int:
        return self._write("DELETE FROM bin_bottles WHERE id = ?", [bin_bottle_id])

    # ------------------------------------------------------------------ rollups
    def count_placed_for_lot(self, lot_id: int) -> int:
        """Bottles of a lot placed anywhere: occupied slots plus bin bottles."""
        return self._count(
            """
            SELECT (SELECT COUNT(*) FROM slots WHERE lot_id = ?)
                 + (SELECT COUNT(*) FROM bin_bottles WHERE lot_id = ?) AS n
            """,
            [lot_id, lot_id],
        )

    def placed_counts(self) -> dict[int, int]:
        rows = self._all(
            """
            SELECT lot_id, COUNT(*) AS n
            FROM (
                SELECT lot_id FROM slots WHERE lot_id IS NOT NULL
                UNION ALL
                SELECT lot_id FROM bin_bottles
            )
            GROUP BY lot_id
            """
        )
        return {int(r["lot_id"]): int(r["n"]) for r in rows}

    def count_filled(self, rack_id: int) -> int:
        return self._count(
            """
            SELECT (SELECT COUNT(*) FROM slots WHERE rack_id = ? AND lot_id IS NOT NULL)
                 + (SELECT COUNT(*) FROM bin_bottles WHERE rack_id = ?) AS n
            """,
            [rack_id, rack_id],
        )

    def unassign_rack(self, rack_id: int) -> int:
        """Free every slot and drop every bin bottle of a rack; returns bottles freed."""
        freed = self._write(
            """
            UPDATE slots SET lot_id = NULL, placed_at = NULL
            WHERE rack_id = ? AND lot_id IS NOT NULL
            """,
            [rack_id],
        )
        freed += self._write("DELETE FROM bin_bottles WHERE rack_id = ?", [rack_id])
        return freed
