import pytest

from app.di import placement_service_for_conn, topology_service_for_conn
from core.dtos import LotDTO
from core.errors import InsufficientQuantity, NetworkFailure


class FakeLedger:
    """Stands in for the inventory API: lots by id, optionally offline."""

    def __init__(self, lots):
        self.lots = {lot.id: lot for lot in lots}
        self.offline = False
        # get_lot calls left before going offline; None means unlimited
        self.budget = None
        self.watched_conn = None
        self.called_in_transaction = False

    def get_lot(self, lot_id):
        if self.watched_conn is not None and self.watched_conn.in_transaction:
            self.called_in_transaction = True
        if self.budget is not None:
            if self.budget <= 0:
                self.offline = True
            self.budget -= 1
        if self.offline:
            raise NetworkFailure("Inventory service unreachable")
        return self.lots.get(lot_id)

    def list_lots(self, cellar_id=None):
        if self.offline:
            raise NetworkFailure("Inventory service unreachable")
        return [lot for lot in self.lots.values() if cellar_id is None or lot.cellar_id == cellar_id]


@pytest.fixture
def ledger():
    return FakeLedger([LotDTO(id=101, cellar_id=1, wine_name="Remote Rioja", quantity=2)])


@pytest.fixture
def remote(conn, ledger):
    placement = placement_service_for_conn(conn, ledger=ledger)
    topology = topology_service_for_conn(conn, placement=placement)
    fridge = topology.create_space(1, "Fridge", "fridge")
    rack = topology.create_rack(fridge.id, "bin", columns=1, rows=1, capacity=5)
    return placement, fridge, rack


def test_quantities_come_from_the_ledger(remote):
    placement, _, rack = remote
    placement.place_in_bin(rack.id, 1, 1, 101)
    placement.place_in_bin(rack.id, 1, 1, 101)
    with pytest.raises(InsufficientQuantity):
        placement.place_in_bin(rack.id, 1, 1, 101)


def test_network_failure_leaves_state_untouched(remote, ledger):
    placement, fridge, rack = remote
    ledger.offline = True
    with pytest.raises(NetworkFailure):
        placement.place_in_bin(rack.id, 1, 1, 101)
    with pytest.raises(NetworkFailure):
        placement.search_unplaced_candidates(fridge.id, "rioja")
    ledger.offline = False
    assert placement.fetch_rack_state(rack.id).bin_bottles == []
    assert placement.available_quantity(101, rack.id) == 2


def test_ledger_outage_mid_commit_reports_partial_success(remote, ledger):
    placement, _, rack = remote
    staging = placement.open_staging(rack.id, 1, 1)
    assert staging.adjust(101, 2) == 2

    ledger.budget = 1
    result = placement.commit_staging(staging)

    assert (result.committed, result.requested) == (1, 2)
    assert result.error_kind == "NetworkFailure"
    assert not result.ok
    assert result.state is not None
    assert [b.lot_id for b in result.state.bin_bottles] == [101]
    assert staging.staged(101) == 1


def test_ledger_is_read_outside_the_write_transaction(conn, remote, ledger):
    placement, _, rack = remote
    ledger.watched_conn = conn
    placement.place_in_bin(rack.id, 1, 1, 101)
    assert ledger.called_in_transaction is False
    assert placement.filled_count(rack.id) == 1
