"""Client-side selection staging for multi-bottle bin placement."""

from __future__ import annotations

from typing import Protocol

from core.addressing import CellAddress


class AvailabilitySource(Protocol):
    def available_quantity(
        self, lot_id: int, rack_id: int, staging: SelectionStaging | None = None
    ) -> int: ...
    def cell_free_room(self, rack_id: int, row: int, column: int) -> int: ...


class SelectionStaging:
    """
    Ordered, non-persisted reservation buffer ``lot_id -> quantity`` for one
    bin cell of one rack.

    Nothing here touches the lot ledger or the rack; the engine reads the
    staged amounts when computing availability, and ``commit_staging`` is the
    only way staged units become placements. Dropping the object (or calling
    ``clear``) cancels the selection with no side effects.
    """

    def __init__(self, source: AvailabilitySource, rack_id: int, row: int, column: int) -> None:
        self._source = source
        self.rack_id = rack_id
        self.cell = CellAddress(row, column)
        self._staged: dict[int, int] = {}

    def staged(self, lot_id: int) -> int:
        return self._staged.get(lot_id, 0)

    def total_staged(self) -> int:
        return sum(self._staged.values())

    def items(self) -> list[tuple[int, int]]:
        """(lot_id, quantity) pairs in the order they were first staged."""
        return list(self._staged.items())

    def max_for(self, lot_id: int) -> int:
        """Upper bound the staged quantity of ``lot_id`` may reach right now."""
        current = self.staged(lot_id)
        by_lot = self._source.available_quantity(lot_id, self.rack_id, self) + current
        others = self.total_staged() - current
        by_cell = self._source.cell_free_room(self.rack_id, self.cell.row, self.cell.column) - others
        return max(0, min(by_lot, by_cell))

    def toggle(self, lot_id: int) -> int:
        """Stage one bottle of ``lot_id``, or clear it if already staged."""
        if self.staged(lot_id) > 0:
            self._staged.pop(lot_id, None)
            return 0
        if self.max_for(lot_id) < 1:
            return 0
        self._staged[lot_id] = 1
        return 1

    def adjust(self, lot_id: int, delta: int) -> int:
        current = self.staged(lot_id)
        upper = self.max_for(lot_id)
        quantity = max(0, min(current + delta, upper))
        if quantity == 0:
            self._staged.pop(lot_id, None)
        else:
            self._staged[lot_id] = quantity
        return quantity

    def consume(self, lot_id: int, n: int) -> int:
        """Drop ``n`` committed units of ``lot_id``; never consults the source."""
        remaining = max(0, self.staged(lot_id) - max(0, n))
        if remaining == 0:
            self._staged.pop(lot_id, None)
        else:
            self._staged[lot_id] = remaining
        return remaining

    def clear(self) -> None:
        self._staged.clear()

    def __bool__(self) -> bool:
        return bool(self._staged)

    def __repr__(self) -> str:
        return (
            f"SelectionStaging(rack_id={self.rack_id}, cell={tuple(self.cell)}, "
            f"staged={self._staged!r})"
        )
