"""
Placement allocation engine.

Assigns bottles drawn from inventory lots to grid slots and bin cells while
keeping two invariants after every mutation:

* conservation: for every lot, occupied slots plus bin bottles referencing it
  never exceed the lot's owned quantity (counted across every rack);
* capacity: a slot holds at most one bottle and a bin cell at most
  ``rack.capacity`` bottles.

Each single placement or removal runs inside one ``atomic()`` block so the
precondition checks and the write see the same state. Multi-bottle adds are a
sequence of single placements and are not atomic as a whole: a failure keeps
the bottles already placed and reports how many went in.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
from typing import Any, Protocol

from core.addressing import CellAddress, SlotAddress
from core.dtos import (
    BatchCommitResult,
    BinBottleDTO,
    LotDTO,
    RackDTO,
    RackStateDTO,
    SlotDTO,
    SpaceDTO,
)
from core.enums import RackKind
from core.errors import (
    AddressOutOfBounds,
    BinFull,
    InsufficientQuantity,
    LotNotFound,
    NotFound,
    PlacementError,
    RackNotFound,
    SlotEmpty,
    SlotOccupied,
    SpaceNotFound,
    WrongRackKind,
)
from core.staging import SelectionStaging
from core.topology import is_valid_address
from core.utils.logging import get_logger

log = get_logger(__name__)


# Keep repos abstract to avoid tight coupling
class RackLookup(Protocol):
    def get(self, rack_id: int) -> RackDTO | None: ...


class SpaceLookup(Protocol):
    def get(self, space_id: int) -> SpaceDTO | None: ...


class PlacementsRepo(Protocol):
    def get_slot(self, rack_id: int, address: SlotAddress) -> SlotDTO | None: ...
    def list_slots(self, rack_id: int) -> list[SlotDTO]: ...
    def occupy_slot(self, rack_id: int, address: SlotAddress, lot_id: int) -> bool: ...
    def clear_slot(self, rack_id: int, address: SlotAddress) -> bool: ...
    def count_in_cell(self, rack_id: int, cell: CellAddress) -> int: ...
    def add_bin_bottle(self, rack_id: int, cell: CellAddress, lot_id: int) -> BinBottleDTO: ...
    def get_bin_bottle(self, bin_bottle_id: int) -> BinBottleDTO | None: ...
    def list_bin_bottles(self, rack_id: int) -> list[BinBottleDTO]: ...
    def delete_bin_bottle(self, bin_bottle_id: int) -> bool: ...
    def count_placed_for_lot(self, lot_id: int) -> int: ...
    def placed_counts(self) -> dict[int, int]: ...
    def count_filled(self, rack_id: int) -> int: ...
    def unassign_rack(self, rack_id: int) -> int: ...
    def audit(
        self,
        entity: str,
        entity_id: int,
        action: str,
        before: dict | None = None,
        after: dict | None = None,
    ) -> None: ...


class LotLedger(Protocol):
    def get_lot(self, lot_id: int) -> LotDTO | None: ...
    def list_lots(self, cellar_id: int | None = None) -> list[LotDTO]: ...


@contextmanager
def _logged(operation: str, **context: Any) -> Iterator[None]:
    try:
        yield
    except PlacementError as exc:
        log.info("%s rejected (%s): %s %s", operation, exc.kind, exc, context)
        raise


def matches_query(lot: LotDTO, query: str) -> bool:
    """Case-insensitive match on wine name, producer name or vintage."""
    q = (query or "").strip().lower()
    if not q:
        return True
    return (
        q in lot.wine_name.lower()
        or q in (lot.producer_name or "").lower()
        or (lot.vintage is not None and q in str(lot.vintage))
    )


class PlacementService:
    def __init__(
        self,
        racks: RackLookup,
        placements: PlacementsRepo,
        ledger: LotLedger,
        *,
        spaces: SpaceLookup | None = None,
        atomic: Callable[[], AbstractContextManager] = nullcontext,
    ) -> None:
        self._racks = racks
        self._placements = placements
        self._ledger = ledger
        self._spaces = spaces
        self._atomic = atomic

    # ------------------------------------------------------------------ lookups
    def _rack(self, rack_id: int) -> RackDTO:
        rack = self._racks.get(rack_id)
        if rack is None:
            raise RackNotFound(rack_id=rack_id)
        return rack

    def _lot(self, lot_id: int) -> LotDTO:
        lot = self._ledger.get_lot(lot_id)
        if lot is None:
            raise LotNotFound(lot_id=lot_id)
        return lot

    def _require_kind(self, rack: RackDTO, kind: RackKind) -> None:
        if rack.kind is not kind:
            raise WrongRackKind(
                f"Rack {rack.id} is a {rack.kind.value} rack; expected {kind.value}",
                rack_id=rack.id,
            )

    def _require_cell(self, rack: RackDTO, cell: CellAddress) -> None:
        if not is_valid_address(rack, cell):
            raise AddressOutOfBounds(rack_id=rack.id, row=cell.row, column=cell.column)

    def _require_available(self, lot_id: int, lot: LotDTO | None) -> LotDTO:
        """``lot`` is fetched from the ledger before the write lock is taken."""
        if lot is None:
            raise LotNotFound(lot_id=lot_id)
        placed = self._placements.count_placed_for_lot(lot_id)
        if placed >= lot.quantity:
            raise InsufficientQuantity(lot_id=lot_id, quantity=lot.quantity, placed=placed)
        return lot

    # ------------------------------------------------------------------ queries
    def available_quantity(
        self, lot_id: int, rack_id: int, staging: SelectionStaging | None = None
    ) -> int:
        """
        Bottles of ``lot_id`` that may still be placed in ``rack_id``: the lot's
        quantity minus every bottle of it already placed (in any rack) minus
        what ``staging`` holds for it, when that staging belongs to this rack.
        Never negative.
        """
        self._rack(rack_id)
        lot = self._lot(lot_id)
        placed = self._placements.count_placed_for_lot(lot_id)
        staged = 0
        if staging is not None and staging.rack_id == rack_id:
            staged = staging.staged(lot_id)
        return max(0, lot.quantity - placed - staged)

    def cell_free_room(self, rack_id: int, row: int, column: int) -> int:
        rack = self._rack(rack_id)
        self._require_kind(rack, RackKind.BIN)
        cell = CellAddress(row, column)
        self._require_cell(rack, cell)
        return max(0, int(rack.capacity or 0) - self._placements.count_in_cell(rack_id, cell))

    def fetch_rack_state(self, rack_id: int) -> RackStateDTO:
        rack = self._rack(rack_id)
        if rack.kind is RackKind.GRID:
            slots = self._placements.list_slots(rack_id)
            bottles: list[BinBottleDTO] = []
        else:
            slots = []
            bottles = self._placements.list_bin_bottles(rack_id)
        return RackStateDTO(rack=rack, slots=slots, bin_bottles=bottles, labels=dict(rack.labels))

    def filled_count(self, rack_id: int) -> int:
        return self._placements.count_filled(rack_id)

    def search_unplaced_candidates(self, space_id: int, query: str = "") -> list[LotDTO]:
        """Lots of the space's cellar matching ``query`` with bottles left to place."""
        if self._spaces is None:
            raise RuntimeError("search_unplaced_candidates needs a space lookup")
        space = self._spaces.get(space_id)
        if space is None:
            raise SpaceNotFound(f"Space {space_id} not found")
        placed = self._placements.placed_counts()
        return [
            lot
            for lot in self._ledger.list_lots(space.cellar_id)
            if matches_query(lot, query) and lot.quantity - placed.get(lot.id, 0) > 0
        ]

    # ------------------------------------------------------------------ grid slots
    def place_in_slot(
        self, rack_id: int, row: int, column: int, depth_position: int, lot_id: int
    ) -> SlotDTO:
        address = SlotAddress(row, column, depth_position)
        with _logged("place_in_slot", rack_id=rack_id, address=tuple(address), lot_id=lot_id):
            lot = self._ledger.get_lot(lot_id)
            with self._atomic():
                rack = self._rack(rack_id)
                self._require_kind(rack, RackKind.GRID)
                slot = None
                if is_valid_address(rack, address):
                    slot = self._placements.get_slot(rack_id, address)
                if slot is None:
                    raise AddressOutOfBounds(
                        rack_id=rack_id, row=row, column=column, depth_position=depth_position
                    )
                if slot.lot_id is not None:
                    raise SlotOccupied(rack_id=rack_id, row=row, column=column)
                self._require_available(lot_id, lot)
                if not self._placements.occupy_slot(rack_id, address, lot_id):
                    raise SlotOccupied(rack_id=rack_id, row=row, column=column)
                self._placements.audit(
                    "slot", rack_id, "place", None, {"address": list(address), "lot_id": lot_id}
                )
                placed = self._placements.get_slot(rack_id, address)
        log.info("placed lot %s in rack %s slot %s", lot_id, rack_id, tuple(address))
        assert placed is not None
        return placed

    def remove_from_slot(self, rack_id: int, row: int, column: int, depth_position: int) -> None:
        address = SlotAddress(row, column, depth_position)
        with _logged("remove_from_slot", rack_id=rack_id, address=tuple(address)):
            with self._atomic():
                rack = self._rack(rack_id)
                self._require_kind(rack, RackKind.GRID)
                slot = None
                if is_valid_address(rack, address):
                    slot = self._placements.get_slot(rack_id, address)
                if slot is None:
                    raise AddressOutOfBounds(
                        rack_id=rack_id, row=row, column=column, depth_position=depth_position
                    )
                if slot.lot_id is None or not self._placements.clear_slot(rack_id, address):
                    raise SlotEmpty(rack_id=rack_id, row=row, column=column)
                self._placements.audit(
                    "slot", rack_id, "remove", {"address": list(address), "lot_id": slot.lot_id}
                )
        log.info("removed lot %s from rack %s slot %s", slot.lot_id, rack_id, tuple(address))

    # ------------------------------------------------------------------ bins
    def place_in_bin(self, rack_id: int, row: int, column: int, lot_id: int) -> BinBottleDTO:
        cell = CellAddress(row, column)
        with _logged("place_in_bin", rack_id=rack_id, cell=tuple(cell), lot_id=lot_id):
            lot = self._ledger.get_lot(lot_id)
            with self._atomic():
                rack = self._rack(rack_id)
                self._require_kind(rack, RackKind.BIN)
                self._require_cell(rack, cell)
                count = self._placements.count_in_cell(rack_id, cell)
                if count >= int(rack.capacity or 0):
                    raise BinFull(rack_id=rack_id, row=row, column=column, capacity=rack.capacity)
                self._require_available(lot_id, lot)
                bottle = self._placements.add_bin_bottle(rack_id, cell, lot_id)
                self._placements.audit(
                    "bin_bottle", bottle.id, "place", None, bottle.model_dump(mode="json")
                )
        log.info("placed lot %s in rack %s bin %s (#%s)", lot_id, rack_id, tuple(cell), bottle.id)
        return bottle

    def remove_bin_bottle(self, bin_bottle_id: int, rack_id: int | None = None) -> None:
        """Remove one exact bottle instance; never 'one of lot X'."""
        with _logged("remove_bin_bottle", bin_bottle_id=bin_bottle_id, rack_id=rack_id):
            with self._atomic():
                bottle = self._placements.get_bin_bottle(bin_bottle_id)
                if bottle is None or (rack_id is not None and bottle.rack_id != rack_id):
                    raise NotFound(bin_bottle_id=bin_bottle_id)
                if not self._placements.delete_bin_bottle(bin_bottle_id):
                    raise NotFound(bin_bottle_id=bin_bottle_id)
                self._placements.audit(
                    "bin_bottle", bin_bottle_id, "remove", bottle.model_dump(mode="json")
                )
        log.info("removed bin bottle #%s (lot %s) from rack %s", bottle.id, bottle.lot_id, bottle.rack_id)

    def unassign_rack(self, rack_id: int) -> int:
        """Return every bottle held in a rack to its lot's unplaced pool."""
        with self._atomic():
            self._rack(rack_id)
            freed = self._placements.unassign_rack(rack_id)
            if freed:
                self._placements.audit("rack", rack_id, "unassign", {"bottles": freed})
        if freed:
            log.info("unassigned %d bottle(s) from rack %s", freed, rack_id)
        return freed

    # ------------------------------------------------------------------ staging + batches
    def open_staging(self, rack_id: int, row: int, column: int) -> SelectionStaging:
        rack = self._rack(rack_id)
        self._require_kind(rack, RackKind.BIN)
        self._require_cell(rack, CellAddress(row, column))
        return SelectionStaging(self, rack_id, row, column)

    def _place_sequence(
        self, rack_id: int, cell: CellAddress, units: Iterable[tuple[int, int]]
    ) -> tuple[list[BinBottleDTO], int, PlacementError | None]:
        units = list(units)
        requested = sum(qty for _, qty in units)
        placed: list[BinBottleDTO] = []
        for lot_id, qty in units:
            for _ in range(qty):
                try:
                    placed.append(self.place_in_bin(rack_id, cell.row, cell.column, lot_id))
                except PlacementError as exc:
                    return placed, requested, exc
        return placed, requested, None

    def _batch_result(
        self,
        rack_id: int,
        placed: list[BinBottleDTO],
        requested: int,
        error: PlacementError | None,
    ) -> BatchCommitResult:
        try:
            state = self.fetch_rack_state(rack_id)
        except PlacementError:
            state = None
        if error is not None:
            log.warning(
                "batch placement in rack %s stopped after %d of %d bottle(s): %s",
                rack_id,
                len(placed),
                requested,
                error.kind,
            )
        return BatchCommitResult(
            requested=requested,
            committed=len(placed),
            placed=placed,
            error=str(error) if error is not None else None,
            error_kind=error.kind if error is not None else None,
            state=state,
        )

    def commit_staging(self, staging: SelectionStaging) -> BatchCommitResult:
        """
        Place every staged unit, one bottle at a time, in staging order.

        On success the staging is cleared. On failure the bottles already
        placed stay placed, the staging keeps only what was not committed, and
        the result carries a fresh rack state for the caller to redisplay.
        """
        placed, requested, error = self._place_sequence(
            staging.rack_id, staging.cell, staging.items()
        )
        if error is None:
            staging.clear()
        else:
            committed_by_lot: dict[int, int] = {}
            for bottle in placed:
                committed_by_lot[bottle.lot_id] = committed_by_lot.get(bottle.lot_id, 0) + 1
            for lot_id, n in committed_by_lot.items():
                staging.consume(lot_id, n)
        if placed and error is None:
            log.info("committed %d staged bottle(s) to rack %s", len(placed), staging.rack_id)
        return self._batch_result(staging.rack_id, placed, requested, error)

    def place_many_in_bin(
        self, rack_id: int, row: int, column: int, lot_id: int, count: int
    ) -> BatchCommitResult:
        placed, requested, error = self._place_sequence(
            rack_id, CellAddress(row, column), [(lot_id, max(0, count))]
        )
        return self._batch_result(rack_id, placed, requested, error)
