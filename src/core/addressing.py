"""Rack addressing.

Grid slots are addressed by ``(row, column, depth_position)`` and bin cells
by ``(row, column)``; all coordinates are 1-based. Labels share the cell
address and travel over the wire as ``"{row}-{column}"`` keys.
"""

from __future__ import annotations

import re
from typing import NamedTuple

_WIRE_KEY_RE = re.compile(r"^(\d+)-(\d+)$")


class CellAddress(NamedTuple):
    row: int
    column: int


class SlotAddress(NamedTuple):
    row: int
    column: int
    depth_position: int = 1

    @property
    def cell(self) -> CellAddress:
        return CellAddress(self.row, self.column)


def encode_cell_key(address: CellAddress) -> str:
    return f"{address.row}-{address.column}"


def decode_cell_key(key: str) -> CellAddress:
    """Parse a ``"{row}-{column}"`` key; raises ValueError on anything else."""
    m = _WIRE_KEY_RE.match(str(key).strip())
    if not m:
        raise ValueError(f"Invalid cell key: {key!r}")
    return CellAddress(int(m.group(1)), int(m.group(2)))
