from __future__ import annotations

import sqlite3

from app.adapters import row_to_bin_bottle, row_to_lot, row_to_rack, row_to_slot, row_to_space, row_to_wall
from app.settings import get_settings
from core.addressing import CellAddress, SlotAddress
from core.dtos import BinBottleDTO, LotDTO, RackDTO, SlotDTO, SpaceDTO, WallDTO
from core.enums import RackKind, SpaceKind, WallPosition
from core.labels import LabelRegistry

# Services (match current Protocols in core/services/*)
from core.services.label_service import LabelService
from core.services.placement_service import LotLedger, PlacementService
from core.services.topology_service import TopologyService
from core.topology import iter_slot_addresses
from infra.db.cellar_db import audit
from infra.db.conn import get_conn

# Concrete repos
from infra.db.repositories import LotsRepo as LotsRepoImpl
from infra.db.repositories import PlacementsRepo as PlacementsRepoImpl
from infra.db.repositories import RacksRepo as RacksRepoImpl
from infra.db.repositories import SpacesRepo as SpacesRepoImpl
from infra.db.session import transaction
from infra.http.inventory_client import InventoryApiClient

# -----------------------------
# Adapters to satisfy Protocols
# -----------------------------


class _SpacesRepoAdapter:
    """Adapts SpacesRepoImpl rows to the SpacesRepo Protocol (DTOs in and out)."""

    def __init__(self, impl: SpacesRepoImpl) -> None:
        self._impl = impl

    def get(self, space_id: int) -> SpaceDTO | None:
        row = self._impl.get_space(space_id)
        return row_to_space(row) if row else None

    def list(self, cellar_id: int) -> list[SpaceDTO]:
        return [row_to_space(r) for r in self._impl.list_spaces(cellar_id)]

    def create(self, *, cellar_id: int, name: str, kind: SpaceKind) -> SpaceDTO:
        space_id = self._impl.insert_space(cellar_id=cellar_id, name=name, kind=kind.value)
        space = self.get(space_id)
        assert space is not None
        audit(self._impl.conn, "space", space_id, "create", None, space.model_dump(mode="json"))
        return space

    def rename(self, space_id: int, name: str) -> None:
        before = self.get(space_id)
        self._impl.rename_space(space_id, name)
        audit(
            self._impl.conn,
            "space",
            space_id,
            "update",
            {"name": before.name if before else None},
            {"name": name},
        )

    def delete(self, space_id: int) -> None:
        before = self.get(space_id)
        self._impl.delete_space(space_id)
        audit(
            self._impl.conn,
            "space",
            space_id,
            "delete",
            before.model_dump(mode="json") if before else None,
        )

    def get_wall(self, wall_id: int) -> WallDTO | None:
        row = self._impl.get_wall(wall_id)
        return row_to_wall(row) if row else None

    def list_walls(self, space_id: int) -> list[WallDTO]:
        return [row_to_wall(r) for r in self._impl.list_walls(space_id)]

    def wall_exists(self, space_id: int, position: WallPosition) -> bool:
        return self._impl.wall_exists(space_id, position.value)

    def create_wall(self, *, space_id: int, position: WallPosition) -> WallDTO:
        wall_id = self._impl.insert_wall(space_id=space_id, position=position.value)
        wall = self.get_wall(wall_id)
        assert wall is not None
        audit(self._impl.conn, "wall", wall_id, "create", None, wall.model_dump(mode="json"))
        return wall

    def delete_wall(self, wall_id: int) -> None:
        before = self.get_wall(wall_id)
        self._impl.delete_wall(wall_id)
        audit(
            self._impl.conn,
            "wall",
            wall_id,
            "delete",
            before.model_dump(mode="json") if before else None,
        )


class _RacksRepoAdapter:
    """
    Adapts RacksRepoImpl to the rack Protocols of the topology, placement and
    label services. Grid slots are materialized here when a rack is created.
    """

    def __init__(self, impl: RacksRepoImpl) -> None:
        self._impl = impl

    def get(self, rack_id: int) -> RackDTO | None:
        row = self._impl.get_rack(rack_id)
        return row_to_rack(row) if row else None

    def list_for_space(self, space_id: int) -> list[RackDTO]:
        return [row_to_rack(r) for r in self._impl.list_racks_for_space(space_id)]

    def ids_for_wall(self, wall_id: int) -> list[int]:
        return self._impl.list_rack_ids_for_wall(wall_id)

    def ids_for_space(self, space_id: int) -> list[int]:
        return self._impl.list_rack_ids_for_space(space_id)

    def create(
        self,
        *,
        space_id: int,
        wall_id: int | None,
        name: str | None,
        kind: RackKind,
        columns: int,
        rows: int,
        depth: int | None,
        capacity: int | None,
    ) -> RackDTO:
        rack_id = self._impl.insert_rack(
            space_id=space_id,
            wall_id=wall_id,
            name=name,
            kind=kind.value,
            cols=columns,
            rows=rows,
            depth=depth,
            capacity=capacity,
            sort_order=self._impl.next_sort_order(space_id),
        )
        if kind is RackKind.GRID:
            self._impl.materialize_slots(rack_id, iter_slot_addresses(rows, columns, depth or 1))
        rack = self.get(rack_id)
        assert rack is not None
        audit(self._impl.conn, "rack", rack_id, "create", None, rack.model_dump(mode="json"))
        return rack

    def delete(self, rack_id: int) -> None:
        before = self.get(rack_id)
        self._impl.delete_rack(rack_id)
        audit(
            self._impl.conn,
            "rack",
            rack_id,
            "delete",
            before.model_dump(mode="json") if before else None,
        )

    def save_labels(self, rack_id: int, labels: LabelRegistry) -> None:
        before = self.get(rack_id)
        self._impl.update_labels(rack_id, labels.to_json())
        audit(
            self._impl.conn,
            "rack",
            rack_id,
            "update",
            {"labels": before.labels if before else None},
            {"labels": labels.to_wire()},
        )

    def save_name(self, rack_id: int, name: str | None) -> None:
        before = self.get(rack_id)
        self._impl.update_name(rack_id, name)
        audit(
            self._impl.conn,
            "rack",
            rack_id,
            "update",
            {"name": before.name if before else None},
            {"name": name},
        )


class _PlacementsRepoAdapter:
    """Adapts PlacementsRepoImpl (row/col arguments, sqlite rows) to addresses and DTOs."""

    def __init__(self, impl: PlacementsRepoImpl) -> None:
        self._impl = impl

    def get_slot(self, rack_id: int, address: SlotAddress) -> SlotDTO | None:
        row = self._impl.get_slot(rack_id, *address)
        return row_to_slot(row) if row else None

    def list_slots(self, rack_id: int) -> list[SlotDTO]:
        return [row_to_slot(r) for r in self._impl.list_slots(rack_id)]

    def occupy_slot(self, rack_id: int, address: SlotAddress, lot_id: int) -> bool:
        return self._impl.occupy_slot(rack_id, *address, lot_id) == 1

    def clear_slot(self, rack_id: int, address: SlotAddress) -> bool:
        return self._impl.clear_slot(rack_id, *address) == 1

    def count_in_cell(self, rack_id: int, cell: CellAddress) -> int:
        return self._impl.count_in_cell(rack_id, *cell)

    def add_bin_bottle(self, rack_id: int, cell: CellAddress, lot_id: int) -> BinBottleDTO:
        bottle_id = self._impl.insert_bin_bottle(rack_id, cell.row, cell.column, lot_id)
        bottle = self.get_bin_bottle(bottle_id)
        assert bottle is not None
        return bottle

    def get_bin_bottle(self, bin_bottle_id: int) -> BinBottleDTO | None:
        row = self._impl.get_bin_bottle(bin_bottle_id)
        return row_to_bin_bottle(row) if row else None

    def list_bin_bottles(self, rack_id: int) -> list[BinBottleDTO]:
        return [row_to_bin_bottle(r) for r in self._impl.list_bin_bottles(rack_id)]

    def delete_bin_bottle(self, bin_bottle_id: int) -> bool:
        return self._impl.delete_bin_bottle(bin_bottle_id) == 1

    def count_placed_for_lot(self, lot_id: int) -> int:
        return self._impl.count_placed_for_lot(lot_id)

    def placed_counts(self) -> dict[int, int]:
        return self._impl.placed_counts()

    def count_filled(self, rack_id: int) -> int:
        return self._impl.count_filled(rack_id)

    def unassign_rack(self, rack_id: int) -> int:
        return self._impl.unassign_rack(rack_id)

    def audit(
        self,
        entity: str,
        entity_id: int,
        action: str,
        before: dict | None = None,
        after: dict | None = None,
    ) -> None:
        audit(self._impl.conn, entity, entity_id, action, before, after)


class SqliteLotLedger:
    """Lot ledger over the local ``lots`` table."""

    def __init__(self, impl: LotsRepoImpl) -> None:
        self._impl = impl

    def get_lot(self, lot_id: int) -> LotDTO | None:
        row = self._impl.get_lot(lot_id)
        return row_to_lot(row) if row else None

    def list_lots(self, cellar_id: int | None = None) -> list[LotDTO]:
        return [row_to_lot(r) for r in self._impl.list_lots(cellar_id)]


# -----------------------------
# Factories used by route handlers
# -----------------------------


def lot_ledger_for_conn(conn: sqlite3.Connection) -> LotLedger:
    """HTTP ledger when an inventory API is configured, else the local lots table."""
    settings = get_settings()
    if settings.inventory_api_base_url:
        return InventoryApiClient(
            settings.inventory_api_base_url,
            token=settings.inventory_api_token,
            timeout=settings.inventory_api_timeout,
            max_retries=settings.inventory_api_max_retries,
        )
    return SqliteLotLedger(LotsRepoImpl(conn))


def placement_service_for_conn(
    conn: sqlite3.Connection, ledger: LotLedger | None = None
) -> PlacementService:
    return PlacementService(
        racks=_RacksRepoAdapter(RacksRepoImpl(conn)),
        placements=_PlacementsRepoAdapter(PlacementsRepoImpl(conn)),
        ledger=ledger if ledger is not None else lot_ledger_for_conn(conn),
        spaces=_SpacesRepoAdapter(SpacesRepoImpl(conn)),
        atomic=lambda: transaction(conn),
    )


def topology_service_for_conn(
    conn: sqlite3.Connection, placement: PlacementService | None = None
) -> TopologyService:
    placement = placement if placement is not None else placement_service_for_conn(conn)
    return TopologyService(
        spaces=_SpacesRepoAdapter(SpacesRepoImpl(conn)),
        racks=_RacksRepoAdapter(RacksRepoImpl(conn)),
        placements=placement,
        default_bin_capacity=get_settings().default_bin_capacity,
        atomic=lambda: transaction(conn),
    )


def label_service_for_conn(conn: sqlite3.Connection) -> LabelService:
    return LabelService(
        racks=_RacksRepoAdapter(RacksRepoImpl(conn)),
        atomic=lambda: transaction(conn),
    )


def get_placement_service() -> PlacementService:
    return placement_service_for_conn(get_conn())


def get_topology_service() -> TopologyService:
    return topology_service_for_conn(get_conn())


def get_label_service() -> LabelService:
    return label_service_for_conn(get_conn())
