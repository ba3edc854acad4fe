from core.staging import SelectionStaging


class FakeSource:
    """Availability per lot, a single bin cell with ``room`` free spaces."""

    def __init__(self, owned, room):
        self.owned = dict(owned)
        self.room = room

    def available_quantity(self, lot_id, rack_id, staging=None):
        staged = staging.staged(lot_id) if staging is not None else 0
        return max(0, self.owned.get(lot_id, 0) - staged)

    def cell_free_room(self, rack_id, row, column):
        return self.room


def test_toggle_stages_one_then_clears():
    staging = SelectionStaging(FakeSource({1: 3}, room=5), rack_id=7, row=1, column=1)
    assert staging.toggle(1) == 1
    assert staging.staged(1) == 1
    assert staging.toggle(1) == 0
    assert staging.staged(1) == 0
    assert not staging


def test_toggle_refuses_when_nothing_available():
    staging = SelectionStaging(FakeSource({1: 0}, room=5), 7, 1, 1)
    assert staging.toggle(1) == 0
    assert staging.items() == []


def test_adjust_clamps_to_lot_availability():
    staging = SelectionStaging(FakeSource({1: 3}, room=10), 7, 1, 1)
    for _ in range(4):
        staging.adjust(1, +1)
    assert staging.staged(1) == 3


def test_adjust_clamps_to_cell_room_across_lots():
    staging = SelectionStaging(FakeSource({1: 6, 2: 6}, room=4), 7, 1, 1)
    assert staging.adjust(1, 3) == 3
    assert staging.adjust(2, 5) == 1
    assert staging.total_staged() == 4


def test_adjust_down_to_zero_removes_entry():
    staging = SelectionStaging(FakeSource({1: 6}, room=4), 7, 1, 1)
    staging.adjust(1, 2)
    assert staging.adjust(1, -5) == 0
    assert staging.items() == []


def test_items_keep_staging_order_and_clear_cancels():
    staging = SelectionStaging(FakeSource({1: 2, 2: 2, 3: 2}, room=10), 7, 2, 1)
    staging.adjust(3, 1)
    staging.adjust(1, 2)
    staging.adjust(2, 1)
    assert staging.items() == [(3, 1), (1, 2), (2, 1)]
    staging.clear()
    assert staging.total_staged() == 0
    assert "rack_id=7" in repr(staging)


def test_consume_subtracts_without_asking_the_source():
    source = FakeSource({1: 3, 2: 1}, room=10)
    staging = SelectionStaging(source, 7, 1, 1)
    staging.adjust(1, 3)
    staging.adjust(2, 1)
    source.available_quantity = None  # any lookup now fails
    assert staging.consume(1, 2) == 1
    assert staging.consume(2, 5) == 0
    assert staging.items() == [(1, 1)]
