import pytest

from core.addressing import CellAddress
from core.errors import AddressOutOfBounds, RackNotFound


@pytest.fixture
def rack(topology, fridge):
    return topology.create_rack(fridge.id, "bin", columns=3, rows=2, capacity=6)


def test_set_label_persists(labels, topology, rack):
    labels.set_label(rack.id, CellAddress(1, 3), "  Champagne ")
    assert labels.get_label(rack.id, (1, 3)) == "Champagne"
    assert topology.get_rack(rack.id).labels == {"1-3": "Champagne"}


def test_blank_label_clears(labels, rack):
    labels.set_label(rack.id, (2, 1), "Port")
    labels.set_label(rack.id, (2, 1), "  ")
    assert labels.get_label(rack.id, (2, 1)) is None
    assert len(labels.get_labels(rack.id)) == 0


def test_label_address_must_fit_rack(labels, rack):
    with pytest.raises(AddressOutOfBounds):
        labels.set_label(rack.id, (3, 1), "nope")
    with pytest.raises(RackNotFound):
        labels.set_label(9999, (1, 1), "nope")


def test_replace_labels(labels, rack):
    labels.set_label(rack.id, (1, 1), "old")
    reg = labels.replace_labels(rack.id, {"2-2": "Rhône", "1-3": "Loire"})
    assert reg.to_wire() == {"2-2": "Rhône", "1-3": "Loire"}
    assert labels.get_label(rack.id, (1, 1)) is None
    with pytest.raises(AddressOutOfBounds):
        labels.replace_labels(rack.id, {"5-5": "outside"})
    assert labels.get_labels(rack.id).to_wire() == {"2-2": "Rhône", "1-3": "Loire"}


def test_rename_rack(labels, rack):
    assert labels.rename_rack(rack.id, " Door ").name == "Door"
    assert labels.rename_rack(rack.id, "   ").name is None


def test_replace_labels_rejects_malformed_and_colliding_keys(labels, rack):
    labels.replace_labels(rack.id, {"1-1": "keep"})
    with pytest.raises(ValueError):
        labels.replace_labels(rack.id, {"1-3": "A", "01-3": "B"})
    with pytest.raises(ValueError):
        labels.replace_labels(rack.id, {"top shelf": "A"})
    with pytest.raises(ValueError):
        labels.replace_labels(rack.id, {"1-2": 7})
    assert labels.get_labels(rack.id).to_wire() == {"1-1": "keep"}


def test_replace_labels_drops_blank_values(labels, rack):
    reg = labels.replace_labels(rack.id, {"1-1": "  ", "2-3": "Sweet"})
    assert reg.to_wire() == {"2-3": "Sweet"}
