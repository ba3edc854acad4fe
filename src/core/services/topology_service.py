from __future__ import annotations

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager, nullcontext
from typing import Protocol

from core.dtos import OccupancyDTO, RackDTO, SpaceDTO, SpaceLayoutDTO, WallDTO
from core.enums import RackKind, SpaceKind, WallPosition
from core.errors import DuplicateWall, InvalidDimensions, RackNotFound, SpaceNotFound, WallNotFound
from core.topology import (
    MAX_GRID_COLUMNS,
    MAX_GRID_DEPTH,
    MAX_GRID_ROWS,
    total_capacity,
)
from core.utils.logging import get_logger

log = get_logger(__name__)


class SpacesRepo(Protocol):
    def get(self, space_id: int) -> SpaceDTO | None: ...
    def list(self, cellar_id: int) -> list[SpaceDTO]: ...
    def create(self, *, cellar_id: int, name: str, kind: SpaceKind) -> SpaceDTO: ...
    def rename(self, space_id: int, name: str) -> None: ...
    def delete(self, space_id: int) -> None: ...
    def get_wall(self, wall_id: int) -> WallDTO | None: ...
    def list_walls(self, space_id: int) -> list[WallDTO]: ...
    def wall_exists(self, space_id: int, position: WallPosition) -> bool: ...
    def create_wall(self, *, space_id: int, position: WallPosition) -> WallDTO: ...
    def delete_wall(self, wall_id: int) -> None: ...


class RacksRepo(Protocol):
    def get(self, rack_id: int) -> RackDTO | None: ...
    def list_for_space(self, space_id: int) -> list[RackDTO]: ...
    def ids_for_wall(self, wall_id: int) -> list[int]: ...
    def ids_for_space(self, space_id: int) -> list[int]: ...
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
    ) -> RackDTO: ...
    def delete(self, rack_id: int) -> None: ...


class RackUnassigner(Protocol):
    def unassign_rack(self, rack_id: int) -> int: ...
    def filled_count(self, rack_id: int) -> int: ...


def _clean_name(name: str | None) -> str | None:
    cleaned = (name or "").strip()
    return cleaned or None


def validate_rack_shape(
    kind: RackKind, columns: int, rows: int, depth: int | None, capacity: int | None
) -> None:
    """Raise InvalidDimensions unless the shape fits the rack setup limits."""
    if columns < 1 or rows < 1:
        raise InvalidDimensions("Rack needs at least one row and one column")
    if kind is RackKind.GRID:
        if columns > MAX_GRID_COLUMNS or rows > MAX_GRID_ROWS:
            raise InvalidDimensions(
                f"Grid racks are limited to {MAX_GRID_COLUMNS} columns x {MAX_GRID_ROWS} rows"
            )
        if depth is None or not 1 <= depth <= MAX_GRID_DEPTH:
            raise InvalidDimensions(f"Grid depth must be between 1 and {MAX_GRID_DEPTH}")
    elif capacity is None or capacity < 1:
        raise InvalidDimensions("Bin capacity must be at least 1")


class TopologyService:
    """
    Structural CRUD over spaces, walls and racks.

    Every deletion path goes through ``delete_rack`` so the bottles a rack
    holds are unassigned before the rack row disappears.
    """

    def __init__(
        self,
        spaces: SpacesRepo,
        racks: RacksRepo,
        placements: RackUnassigner,
        *,
        default_bin_capacity: int = 10,
        atomic: Callable[[], AbstractContextManager] = nullcontext,
    ) -> None:
        self._spaces = spaces
        self._racks = racks
        self._placements = placements
        self._default_bin_capacity = default_bin_capacity
        self._atomic = atomic

    # Spaces
    def _space(self, space_id: int) -> SpaceDTO:
        space = self._spaces.get(space_id)
        if space is None:
            raise SpaceNotFound(f"Space {space_id} not found")
        return space

    def list_spaces(self, cellar_id: int) -> list[SpaceDTO]:
        return self._spaces.list(cellar_id)

    def get_space(self, space_id: int) -> SpaceDTO:
        return self._space(space_id)

    def create_space(
        self,
        cellar_id: int,
        name: str,
        kind: SpaceKind | str,
        walls: Iterable[WallPosition | str] = (),
    ) -> SpaceDTO:
        kind = SpaceKind.from_any(kind)
        name = _clean_name(name)
        if name is None:
            raise InvalidDimensions("Space name is required")
        positions = [WallPosition.from_any(w) for w in walls]
        if kind is SpaceKind.FRIDGE and positions:
            raise InvalidDimensions("Fridges have no walls")
        if len(set(positions)) != len(positions):
            raise DuplicateWall("Each wall position may appear once per space")
        with self._atomic():
            space = self._spaces.create(cellar_id=cellar_id, name=name, kind=kind)
            for position in positions:
                self._spaces.create_wall(space_id=space.id, position=position)
        log.info("created %s space %s (%r) with %d wall(s)", kind.value, space.id, name, len(positions))
        return space

    def rename_space(self, space_id: int, name: str) -> SpaceDTO:
        cleaned = _clean_name(name)
        if cleaned is None:
            raise InvalidDimensions("Space name is required")
        with self._atomic():
            self._space(space_id)
            self._spaces.rename(space_id, cleaned)
        return self._space(space_id)

    def delete_space(self, space_id: int) -> int:
        """Delete a space with its walls and racks; returns bottles unassigned."""
        freed = 0
        with self._atomic():
            self._space(space_id)
            for rack_id in self._racks.ids_for_space(space_id):
                freed += self.delete_rack(rack_id)
            self._spaces.delete(space_id)
        log.info("deleted space %s (%d bottle(s) unassigned)", space_id, freed)
        return freed

    # Walls
    def list_walls(self, space_id: int) -> list[WallDTO]:
        self._space(space_id)
        return self._spaces.list_walls(space_id)

    def add_wall(self, space_id: int, position: WallPosition | str) -> WallDTO:
        position = WallPosition.from_any(position)
        with self._atomic():
            space = self._space(space_id)
            if space.kind is not SpaceKind.ROOM:
                raise InvalidDimensions("Only rooms have walls")
            if self._spaces.wall_exists(space_id, position):
                raise DuplicateWall(f"Space {space_id} already has a {position.value} wall")
            wall = self._spaces.create_wall(space_id=space_id, position=position)
        log.info("added %s wall %s to space %s", position.value, wall.id, space_id)
        return wall

    def delete_wall(self, wall_id: int) -> int:
        freed = 0
        with self._atomic():
            if self._spaces.get_wall(wall_id) is None:
                raise WallNotFound(f"Wall {wall_id} not found")
            for rack_id in self._racks.ids_for_wall(wall_id):
                freed += self.delete_rack(rack_id)
            self._spaces.delete_wall(wall_id)
        log.info("deleted wall %s (%d bottle(s) unassigned)", wall_id, freed)
        return freed

    # Racks
    def get_rack(self, rack_id: int) -> RackDTO:
        rack = self._racks.get(rack_id)
        if rack is None:
            raise RackNotFound(rack_id=rack_id)
        return rack

    def create_rack(
        self,
        space_id: int,
        kind: RackKind | str,
        columns: int,
        rows: int,
        depth: int | None = 1,
        capacity: int | None = None,
        wall_id: int | None = None,
        name: str | None = None,
    ) -> RackDTO:
        kind = RackKind.from_any(kind)
        if kind is RackKind.GRID:
            depth = 1 if depth is None else depth
            capacity = None
        else:
            depth = None
            capacity = self._default_bin_capacity if capacity is None else capacity
        validate_rack_shape(kind, columns, rows, depth, capacity)
        with self._atomic():
            space = self._space(space_id)
            if space.kind is SpaceKind.ROOM:
                wall = self._spaces.get_wall(wall_id) if wall_id is not None else None
                if wall is None or wall.space_id != space_id:
                    raise WallNotFound(f"Racks in a room need a wall of space {space_id}")
            elif wall_id is not None:
                raise InvalidDimensions("Fridge racks are not attached to a wall")
            rack = self._racks.create(
                space_id=space_id,
                wall_id=wall_id,
                name=_clean_name(name),
                kind=kind,
                columns=columns,
                rows=rows,
                depth=depth,
                capacity=capacity,
            )
        log.info(
            "created %s rack %s in space %s (%dx%d)", kind.value, rack.id, space_id, columns, rows
        )
        return rack

    def delete_rack(self, rack_id: int) -> int:
        with self._atomic():
            self.get_rack(rack_id)
            freed = self._placements.unassign_rack(rack_id)
            self._racks.delete(rack_id)
        log.info("deleted rack %s (%d bottle(s) unassigned)", rack_id, freed)
        return freed

    # Overview
    def get_space_layout(self, space_id: int) -> SpaceLayoutDTO:
        space = self._space(space_id)
        walls = self._spaces.list_walls(space_id)
        racks = self._racks.list_for_space(space_id)

        rack_occupancy = [
            OccupancyDTO(
                rack_id=rack.id,
                wall_id=rack.wall_id,
                filled=self._placements.filled_count(rack.id),
                total=total_capacity(rack),
            )
            for rack in racks
        ]
        wall_occupancy = []
        for wall in walls:
            on_wall = [o for o in rack_occupancy if o.wall_id == wall.id]
            wall_occupancy.append(
                OccupancyDTO(
                    wall_id=wall.id,
                    filled=sum(o.filled for o in on_wall),
                    total=sum(o.total for o in on_wall),
                )
            )
        return SpaceLayoutDTO(
            space=space,
            walls=walls,
            racks=racks,
            rack_occupancy=rack_occupancy,
            wall_occupancy=wall_occupancy,
            occupancy=OccupancyDTO(
                filled=sum(o.filled for o in rack_occupancy),
                total=sum(o.total for o in rack_occupancy),
            ),
        )
