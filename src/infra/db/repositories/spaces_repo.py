from __future__ import annotations

from infra.db.cellar_db import lastrowid

from .base import BaseRepo


class SpacesRepo(BaseRepo):
    # Spaces
    def get_space(self, space_id: int) -> dict | None:
        return self._one(
            """
            SELECT s.id, s.cellar_id, s.name, s.kind
            FROM spaces s
            WHERE s.id = ?
            """,
            [space_id],
        )

    def list_spaces(self, cellar_id: int) -> list[dict]:
        return self._all(
            """
            SELECT s.id, s.cellar_id, s.name, s.kind
            FROM spaces s
            WHERE s.cellar_id = ?
            ORDER BY s.name COLLATE NOCASE, s.id
            """,
            [cellar_id],
        )

    def insert_space(self, *, cellar_id: int, name: str, kind: str) -> int:
        cur = self.conn.execute(
            "INSERT INTO spaces(cellar_id, name, kind) VALUES (?, ?, ?)",
            (cellar_id, name, kind),
        )
        return lastrowid(cur)

    def rename_space(self, space_id: int, name: str) -> int:
        return self._write(
            "UPDATE spaces SET name = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [name, space_id],
        )

    def delete_space(self, space_id: int) -> int:
        return self._write("DELETE FROM spaces WHERE id = ?", [space_id])

    # Walls
    def get_wall(self, wall_id: int) -> dict | None:
        return self._one(
            "SELECT w.id, w.space_id, w.position FROM walls w WHERE w.id = ?",
            [wall_id],
        )

    def list_walls(self, space_id: int) -> list[dict]:
        return self._all(
            """
            SELECT w.id, w.space_id, w.position
            FROM walls w
            WHERE w.space_id = ?
            ORDER BY w.id
            """,
            [space_id],
        )

    def wall_exists(self, space_id: int, position: str) -> bool:
        return (
            self._count(
                "SELECT COUNT(*) FROM walls WHERE space_id = ? AND position = ?",
                [space_id, position],
            )
            > 0
        )

    def insert_wall(self, *, space_id: int, position: str) -> int:
        cur = self.conn.execute(
            "INSERT INTO walls(space_id, position) VALUES (?, ?)",
            (space_id, position),
        )
        return lastrowid(cur)

    def delete_wall(self, wall_id: int) -> int:
        return self._write("DELETE FROM walls WHERE id = ?", [wall_id])
