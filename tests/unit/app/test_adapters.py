import sqlite3

from app import adapters as adapters_mod
from core.dtos import LotDTO, RackDTO
from core.enums import RackKind, SpaceKind


def test_row_to_space_accepts_legacy_kind():
    space = adapters_mod.row_to_space({"id": 1, "cellar_id": 1, "name": "A", "kind": "cabinet"})
    assert space.kind is SpaceKind.FRIDGE


def test_row_to_rack_accepts_sqlite_row_and_parses_labels():
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    row = conn.execute(
        """
        SELECT 5 AS id, 2 AS space_id, NULL AS wall_id, 'Door' AS name, 'bin' AS kind,
               3 AS cols, 2 AS rows, NULL AS depth, 6 AS capacity, 1 AS sort_order,
               '{"1-2": "Port", "x": "bad"}' AS labels
        """
    ).fetchone()
    rack = adapters_mod.row_to_rack(row)
    conn.close()
    assert isinstance(rack, RackDTO)
    assert rack.kind is RackKind.BIN
    assert (rack.columns, rack.rows, rack.capacity) == (3, 2, 6)
    assert rack.wall_id is None
    assert rack.labels == {"1-2": "Port"}


def test_row_to_slot_maps_index_columns():
    slot = adapters_mod.row_to_slot(
        {"rack_id": 1, "row_index": 2, "col_index": 3, "depth_position": 1, "lot_id": None}
    )
    assert (slot.row, slot.column, slot.depth_position) == (2, 3, 1)
    assert slot.lot_id is None


def test_row_to_bin_bottle_maps_bin_col():
    bottle = adapters_mod.row_to_bin_bottle(
        {"id": 9, "rack_id": 1, "bin_row": 1, "bin_col": 2, "lot_id": 4, "vintage": "2015"}
    )
    assert bottle.bin_column == 2
    assert bottle.vintage == 2015


def test_row_to_lot_clamps_negative_quantity():
    lot = adapters_mod.row_to_lot({"id": 1, "wine_name": "X", "quantity": -3})
    assert lot.quantity == 0


def test_api_row_to_lot_flat_camel_case():
    lot = adapters_mod.api_row_to_lot(
        {"id": "12", "cellarId": 3, "wineName": "Barolo", "producerName": "Rinaldi", "vintage": 2016, "quantity": 6}
    )
    assert lot == LotDTO(
        id=12, cellar_id=3, wine_name="Barolo", producer_name="Rinaldi", vintage=2016, quantity=6
    )


def test_api_row_to_lot_nested_and_legacy_qty():
    lot = adapters_mod.api_row_to_lot(
        {"id": 4, "wine": {"name": "Chablis", "color": "white"}, "producer": {"name": "Raveneau"}, "qty": 2}
    )
    assert (lot.wine_name, lot.producer_name, lot.color, lot.quantity) == (
        "Chablis",
        "Raveneau",
        "white",
        2,
    )


def test_api_row_to_lot_defaults():
    lot = adapters_mod.api_row_to_lot({"id": 1})
    assert lot.wine_name == "Unknown"
    assert lot.quantity == 1
    assert lot.vintage is None
