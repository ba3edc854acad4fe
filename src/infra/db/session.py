from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Protocol


class _ConnLike(Protocol):
    in_transaction: bool

    def execute(self, sql: str, *args: Any) -> Any: ...
    def commit(self) -> Any: ...
    def rollback(self) -> Any: ...


@contextmanager
def transaction(conn: _ConnLike, *, immediate: bool = True) -> Generator[_ConnLike]:
    """
    Write transaction around a block. With ``immediate`` the write lock is
    taken up front (BEGIN IMMEDIATE) so a check-then-write inside the block
    cannot interleave with another writer on the same database.

    Nested use joins the enclosing transaction; only the outermost block
    commits or rolls back.
    """
    if conn.in_transaction:
        yield conn
        return
    if immediate:
        conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.commit()
    except Exception:
        try:
            conn.rollback()
        finally:
            raise
