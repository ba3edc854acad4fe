from collections.abc import Mapping

from core.dtos import BinBottleDTO, LotDTO, RackDTO, SlotDTO, SpaceDTO, WallDTO
from core.enums import RackKind, SpaceKind, WallPosition
from core.labels import LabelRegistry


def _as_dict(row: Mapping) -> dict:
    # sqlite3.Row has keys() but no get()
    return row if isinstance(row, dict) else dict(row)


def _opt_int(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _opt_str(value) -> str | None:
    if value is None:
        return None
    return str(value)


def row_to_space(row: Mapping) -> SpaceDTO:
    row = _as_dict(row)
    return SpaceDTO(
        id=int(row.get("id") or 0),
        cellar_id=int(row.get("cellar_id") or 0),
        name=row.get("name") or "",
        kind=SpaceKind.from_any(row.get("kind")),
    )


def row_to_wall(row: Mapping) -> WallDTO:
    row = _as_dict(row)
    return WallDTO(
        id=int(row.get("id") or 0),
        space_id=int(row.get("space_id") or 0),
        position=WallPosition.from_any(row.get("position")),
    )


def row_to_rack(row: Mapping) -> RackDTO:
    row = _as_dict(row)
    return RackDTO(
        id=int(row.get("id") or 0),
        space_id=int(row.get("space_id") or 0),
        wall_id=_opt_int(row.get("wall_id")),
        name=_opt_str(row.get("name")),
        kind=RackKind.from_any(row.get("kind")),
        columns=int(row.get("cols", row.get("columns")) or 0),
        rows=int(row.get("rows") or 0),
        depth=_opt_int(row.get("depth")),
        capacity=_opt_int(row.get("capacity")),
        sort_order=int(row.get("sort_order") or 0),
        labels=LabelRegistry.from_wire(row.get("labels")).to_wire(),
    )


def row_to_slot(row: Mapping) -> SlotDTO:
    row = _as_dict(row)
    return SlotDTO(
        rack_id=int(row.get("rack_id") or 0),
        row=int(row.get("row_index", row.get("row")) or 0),
        column=int(row.get("col_index", row.get("column")) or 0),
        depth_position=int(row.get("depth_position") or 1),
        lot_id=_opt_int(row.get("lot_id")),
        wine_name=_opt_str(row.get("wine_name")),
        producer_name=_opt_str(row.get("producer_name")),
        vintage=_opt_int(row.get("vintage")),
        wine_color=_opt_str(row.get("wine_color")),
    )


def row_to_bin_bottle(row: Mapping) -> BinBottleDTO:
    row = _as_dict(row)
    return BinBottleDTO(
        id=int(row.get("id") or 0),
        rack_id=int(row.get("rack_id") or 0),
        bin_row=int(row.get("bin_row") or 0),
        bin_column=int(row.get("bin_col", row.get("bin_column")) or 0),
        lot_id=int(row.get("lot_id") or 0),
        wine_name=_opt_str(row.get("wine_name")),
        producer_name=_opt_str(row.get("producer_name")),
        vintage=_opt_int(row.get("vintage")),
        wine_color=_opt_str(row.get("wine_color")),
    )


def row_to_lot(row: Mapping) -> LotDTO:
    row = _as_dict(row)
    return LotDTO(
        id=int(row.get("id") or 0),
        cellar_id=_opt_int(row.get("cellar_id")),
        wine_name=row.get("wine_name") or "Unknown",
        producer_name=row.get("producer_name") or "",
        vintage=_opt_int(row.get("vintage")),
        color=_opt_str(row.get("color")),
        quantity=max(0, int(row.get("quantity") or 0)),
    )


def api_row_to_lot(row: Mapping) -> LotDTO:
    """
    Rebuild a lot from the inventory API's loosely-shaped JSON. Accepts the
    flat camelCase form (wineName, producerName) as well as nested
    wine/producer objects and the legacy ``qty`` field.
    """
    row = _as_dict(row)
    wine = row.get("wine") if isinstance(row.get("wine"), Mapping) else {}
    producer = row.get("producer") if isinstance(row.get("producer"), Mapping) else {}
    quantity = row.get("quantity")
    if quantity is None:
        quantity = row.get("qty")
    if quantity is None:
        quantity = 1
    return LotDTO(
        id=int(row.get("id") or 0),
        cellar_id=_opt_int(row.get("cellarId", row.get("cellar_id"))),
        wine_name=str(row.get("wineName") or wine.get("name") or "Unknown"),
        producer_name=str(row.get("producerName") or producer.get("name") or ""),
        vintage=_opt_int(row.get("vintage")),
        color=_opt_str(row.get("wineColor") or row.get("color") or wine.get("color")),
        quantity=max(0, int(quantity)),
    )
