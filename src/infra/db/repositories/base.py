from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import Any


class BaseRepo:
    """Shared query helpers; rows come back as sqlite3.Row (see cellar_db.connect)."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _one(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Row | None:
        return self.conn.execute(sql, params or []).fetchone()

    def _all(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        return self.conn.execute(sql, params or []).fetchall()

    def _count(self, sql: str, params: Sequence[Any] | None = None) -> int:
        """First column of the first row as an int; 0 for no row or NULL."""
        row = self.conn.execute(sql, params or []).fetchone()
        if row is None or row[0] is None:
            return 0
        return int(row[0])

    def _write(self, sql: str, params: Sequence[Any] | None = None) -> int:
        """Run an UPDATE/DELETE and return the number of rows it touched."""
        return self.conn.execute(sql, params or []).rowcount
