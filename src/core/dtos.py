from pydantic import BaseModel, ConfigDict, Field

from core.enums import RackKind, SpaceKind, WallPosition


class DTOBase(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        alias_generator=lambda s: "".join(
            ["_" + c.lower() if c.isupper() else c for c in s]
        ).lstrip("_"),
        str_strip_whitespace=True,
        strict=True,
    )


class SpaceDTO(DTOBase):
    id: int
    cellar_id: int
    name: str
    kind: SpaceKind


class WallDTO(DTOBase):
    id: int
    space_id: int
    position: WallPosition


class RackDTO(DTOBase):
    id: int
    space_id: int
    wall_id: int | None = None
    name: str | None = None
    kind: RackKind
    columns: int
    rows: int
    depth: int | None = None
    capacity: int | None = None
    sort_order: int = 0
    labels: dict[str, str] = Field(default_factory=dict)


class SlotDTO(DTOBase):
    rack_id: int
    row: int
    column: int
    depth_position: int
    lot_id: int | None = None
    wine_name: str | None = None
    producer_name: str | None = None
    vintage: int | None = None
    wine_color: str | None = None


class BinBottleDTO(DTOBase):
    id: int
    rack_id: int
    bin_row: int
    bin_column: int
    lot_id: int
    wine_name: str | None = None
    producer_name: str | None = None
    vintage: int | None = None
    wine_color: str | None = None


class LotDTO(DTOBase):
    id: int
    cellar_id: int | None = None
    wine_name: str
    producer_name: str = ""
    vintage: int | None = None
    color: str | None = None
    quantity: int


class RackStateDTO(DTOBase):
    rack: RackDTO
    slots: list[SlotDTO] = Field(default_factory=list)
    bin_bottles: list[BinBottleDTO] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)


class OccupancyDTO(DTOBase):
    rack_id: int | None = None
    wall_id: int | None = None
    filled: int
    total: int


class SpaceLayoutDTO(DTOBase):
    space: SpaceDTO
    walls: list[WallDTO]
    racks: list[RackDTO]
    rack_occupancy: list[OccupancyDTO]
    wall_occupancy: list[OccupancyDTO]
    occupancy: OccupancyDTO


class BatchCommitResult(DTOBase):
    requested: int
    committed: int
    placed: list[BinBottleDTO] = Field(default_factory=list)
    error: str | None = None
    error_kind: str | None = None
    state: RackStateDTO | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None and self.committed == self.requested
