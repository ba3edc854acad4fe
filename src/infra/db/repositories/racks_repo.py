from __future__ import annotations

from collections.abc import Iterable

from infra.db.cellar_db import lastrowid

from .base import BaseRepo

_RACK_COLUMNS = """
    r.id, r.space_id, r.wall_id, r.name, r.kind,
    r.cols, r.rows, r.depth, r.capacity, r.sort_order, r.labels
"""


class RacksRepo(BaseRepo):
    def get_rack(self, rack_id: int) -> dict | None:
        return self._one(
            f"""
            SELECT {_RACK_COLUMNS}
            FROM racks r
            WHERE r.id = ?
            """,
            [rack_id],
        )

    def list_racks_for_space(self, space_id: int) -> list[dict]:
        return self._all(
            f"""
            SELECT {_RACK_COLUMNS}
            FROM racks r
            WHERE r.space_id = ?
            ORDER BY r.sort_order, r.id
            """,
            [space_id],
        )

    def list_rack_ids_for_wall(self, wall_id: int) -> list[int]:
        rows = self._all("SELECT id FROM racks WHERE wall_id = ? ORDER BY id", [wall_id])
        return [int(r["id"]) for r in rows]

    def list_rack_ids_for_space(self, space_id: int) -> list[int]:
        rows = self._all("SELECT id FROM racks WHERE space_id = ? ORDER BY id", [space_id])
        return [int(r["id"]) for r in rows]

    def next_sort_order(self, space_id: int) -> int:
        return self._count(
            "SELECT COALESCE(MAX(sort_order), -1) + 1 AS n FROM racks WHERE space_id = ?",
            [space_id],
        )

    def insert_rack(
        self,
        *,
        space_id: int,
        wall_id: int | None,
        name: str | None,
        kind: str,
        cols: int,
        rows: int,
        depth: int | None,
        capacity: int | None,
        sort_order: int = 0,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO racks(space_id, wall_id, name, kind, cols, rows, depth, capacity, sort_order)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (space_id, wall_id, name, kind, cols, rows, depth, capacity, sort_order),
        )
        return lastrowid(cur)

    def materialize_slots(self, rack_id: int, addresses: Iterable[tuple[int, int, int]]) -> None:
        self.conn.executemany(
            """
            INSERT INTO slots(rack_id, row_index, col_index, depth_position)
            VALUES (?, ?, ?, ?)
            """,
            [(rack_id, row, col, depth) for row, col, depth in addresses],
        )

    def update_name(self, rack_id: int, name: str | None) -> int:
        return self._write(
            "UPDATE racks SET name = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [name, rack_id],
        )

    def update_labels(self, rack_id: int, labels_json: str) -> int:
        return self._write(
            "UPDATE racks SET labels = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [labels_json, rack_id],
        )

    def delete_rack(self, rack_id: int) -> int:
        return self._write("DELETE FROM racks WHERE id = ?", [rack_id])
