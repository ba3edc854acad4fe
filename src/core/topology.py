"""Shape queries over rack geometry.

Pure functions: they look only at the ``RackDTO`` they are given.
"""

from __future__ import annotations

from typing import NamedTuple

from core.addressing import CellAddress, SlotAddress
from core.dtos import RackDTO
from core.enums import RackKind
from core.errors import AddressOutOfBounds

# Limits of the rack setup screens
MAX_GRID_COLUMNS = 20
MAX_GRID_ROWS = 20
MAX_GRID_DEPTH = 5


class RackDimensions(NamedTuple):
    rows: int
    columns: int
    depth: int | None
    capacity: int | None


def dimensions(rack: RackDTO) -> RackDimensions:
    if rack.kind is RackKind.GRID:
        return RackDimensions(rack.rows, rack.columns, rack.depth or 1, None)
    return RackDimensions(rack.rows, rack.columns, None, rack.capacity)


def _in_cell_bounds(rack: RackDTO, row: int, column: int) -> bool:
    return 0 < row <= rack.rows and 0 < column <= rack.columns


def is_valid_address(rack: RackDTO, address: SlotAddress | CellAddress) -> bool:
    """Grid racks take a SlotAddress, bin racks a CellAddress (1-based)."""
    if rack.kind is RackKind.GRID:
        if not isinstance(address, SlotAddress):
            return False
        depth = rack.depth or 1
        return _in_cell_bounds(rack, address.row, address.column) and (
            0 < address.depth_position <= depth
        )
    if isinstance(address, SlotAddress):
        return False
    return _in_cell_bounds(rack, address.row, address.column)


def is_valid_cell(rack: RackDTO, address: CellAddress) -> bool:
    """Cell-level bounds check, used for labels on either rack kind."""
    return _in_cell_bounds(rack, address.row, address.column)


def capacity_of(rack: RackDTO, address: SlotAddress | CellAddress) -> int:
    if not is_valid_address(rack, address):
        raise AddressOutOfBounds(rack_id=rack.id, address=list(address))
    if rack.kind is RackKind.GRID:
        return 1
    return int(rack.capacity or 0)


def total_capacity(rack: RackDTO) -> int:
    if rack.kind is RackKind.GRID:
        return rack.rows * rack.columns * (rack.depth or 1)
    return rack.rows * rack.columns * int(rack.capacity or 0)


def iter_slot_addresses(rows: int, columns: int, depth: int):
    """Yield every slot address of a grid rack in row/column/depth order."""
    for row in range(1, rows + 1):
        for column in range(1, columns + 1):
            for depth_position in range(1, depth + 1):
                yield SlotAddress(row, column, depth_position)
