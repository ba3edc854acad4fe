import pytest

from infra.db.repositories import LotsRepo, PlacementsRepo, RacksRepo, SpacesRepo
from infra.db.session import transaction


@pytest.fixture
def seeded(conn):
    spaces = SpacesRepo(conn)
    racks = RacksRepo(conn)
    lots = LotsRepo(conn)
    space_id = spaces.insert_space(cellar_id=1, name="Cellar", kind="room")
    wall_id = spaces.insert_wall(space_id=space_id, position="left")
    grid_id = racks.insert_rack(
        space_id=space_id, wall_id=wall_id, name=None, kind="grid", cols=2, rows=2, depth=1, capacity=None
    )
    racks.materialize_slots(grid_id, [(1, 1, 1), (1, 2, 1), (2, 1, 1), (2, 2, 1)])
    bin_id = racks.insert_rack(
        space_id=space_id,
        wall_id=wall_id,
        name="Cases",
        kind="bin",
        cols=1,
        rows=1,
        depth=None,
        capacity=3,
        sort_order=1,
    )
    lot_id = lots.insert_lot(cellar_id=1, wine_name="Barolo", quantity=5, vintage=2016)
    conn.commit()
    return {"space": space_id, "wall": wall_id, "grid": grid_id, "bin": bin_id, "lot": lot_id}


def test_spaces_and_walls(conn, seeded):
    spaces = SpacesRepo(conn)
    assert spaces.get_space(seeded["space"])["name"] == "Cellar"
    assert [r["id"] for r in spaces.list_spaces(1)] == [seeded["space"]]
    assert spaces.wall_exists(seeded["space"], "left")
    assert not spaces.wall_exists(seeded["space"], "back")
    assert spaces.rename_space(seeded["space"], "Basement") == 1
    assert spaces.get_space(seeded["space"])["name"] == "Basement"


def test_racks_listing_and_sort_order(conn, seeded):
    racks = RacksRepo(conn)
    listed = racks.list_racks_for_space(seeded["space"])
    assert [r["id"] for r in listed] == [seeded["grid"], seeded["bin"]]
    assert racks.next_sort_order(seeded["space"]) == 2
    assert racks.list_rack_ids_for_wall(seeded["wall"]) == [seeded["grid"], seeded["bin"]]
    assert racks.get_rack(seeded["grid"])["labels"] == "{}"


def test_occupy_slot_only_when_empty(conn, seeded):
    repo = PlacementsRepo(conn)
    assert repo.occupy_slot(seeded["grid"], 1, 1, 1, seeded["lot"]) == 1
    assert repo.occupy_slot(seeded["grid"], 1, 1, 1, seeded["lot"]) == 0
    slot = repo.get_slot(seeded["grid"], 1, 1, 1)
    assert slot["lot_id"] == seeded["lot"]
    assert repo.clear_slot(seeded["grid"], 1, 1, 1) == 1
    assert repo.clear_slot(seeded["grid"], 1, 1, 1) == 0


def test_list_slots_joins_lot_details(conn, seeded):
    repo = PlacementsRepo(conn)
    repo.occupy_slot(seeded["grid"], 2, 1, 1, seeded["lot"])
    slots = repo.list_slots(seeded["grid"])
    assert len(slots) == 4
    filled = [s for s in slots if s["lot_id"] is not None]
    assert filled[0]["wine_name"] == "Barolo"
    assert filled[0]["vintage"] == 2016


def test_bin_bottles_and_rollups(conn, seeded):
    repo = PlacementsRepo(conn)
    b1 = repo.insert_bin_bottle(seeded["bin"], 1, 1, seeded["lot"])
    repo.insert_bin_bottle(seeded["bin"], 1, 1, seeded["lot"])
    repo.occupy_slot(seeded["grid"], 1, 2, 1, seeded["lot"])

    assert repo.count_in_cell(seeded["bin"], 1, 1) == 2
    assert repo.count_placed_for_lot(seeded["lot"]) == 3
    assert repo.placed_counts() == {seeded["lot"]: 3}
    assert repo.count_filled(seeded["bin"]) == 2
    assert repo.count_filled(seeded["grid"]) == 1

    assert repo.get_bin_bottle(b1)["bin_col"] == 1
    assert repo.delete_bin_bottle(b1) == 1
    assert repo.get_bin_bottle(b1) is None
    assert repo.count_placed_for_lot(seeded["lot"]) == 2


def test_unassign_rack_frees_everything(conn, seeded):
    repo = PlacementsRepo(conn)
    repo.occupy_slot(seeded["grid"], 1, 1, 1, seeded["lot"])
    repo.occupy_slot(seeded["grid"], 2, 2, 1, seeded["lot"])
    assert repo.unassign_rack(seeded["grid"]) == 2
    assert repo.count_placed_for_lot(seeded["lot"]) == 0
    assert len(repo.list_slots(seeded["grid"])) == 4


def test_deleting_space_cascades(conn, seeded):
    spaces = SpacesRepo(conn)
    PlacementsRepo(conn).insert_bin_bottle(seeded["bin"], 1, 1, seeded["lot"])
    spaces.delete_space(seeded["space"])
    assert RacksRepo(conn).get_rack(seeded["grid"]) is None
    assert spaces.get_wall(seeded["wall"]) is None
    assert PlacementsRepo(conn).count_placed_for_lot(seeded["lot"]) == 0


def test_lots_repo(conn, seeded):
    lots = LotsRepo(conn)
    lots.insert_lot(cellar_id=2, wine_name="Other", quantity=1)
    assert [r["wine_name"] for r in lots.list_lots(1)] == ["Barolo"]
    assert len(lots.list_lots()) == 2
    assert lots.update_quantity(seeded["lot"], 7) == 1
    assert lots.get_lot(seeded["lot"])["quantity"] == 7


def test_transaction_rolls_back_on_error(conn, seeded):
    lots = LotsRepo(conn)
    with pytest.raises(RuntimeError):
        with transaction(conn):
            lots.update_quantity(seeded["lot"], 0)
            raise RuntimeError("boom")
    assert lots.get_lot(seeded["lot"])["quantity"] == 5


def test_nested_transaction_joins_outer(conn, seeded):
    lots = LotsRepo(conn)
    with pytest.raises(RuntimeError):
        with transaction(conn):
            with transaction(conn):
                lots.update_quantity(seeded["lot"], 1)
            raise RuntimeError("outer fails")
    assert lots.get_lot(seeded["lot"])["quantity"] == 5
