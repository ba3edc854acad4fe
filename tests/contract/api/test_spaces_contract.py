# Runs against a live server: pytest --api-base-url http://localhost:8000/api
import pytest
import requests

pytestmark = pytest.mark.contract


def _get_json(url, **params):
    resp = requests.get(url, params=params or None, timeout=10)
    return resp.status_code, resp.headers.get("Content-Type", ""), resp


def test_contract_spaces_list(api_base_url, skip_if_no_api):
    base = api_base_url.rstrip("/")
    status, ctype, resp = _get_json(f"{base}/cellars/1/spaces")
    assert status == 200, f"Expected 200, got {status}: {resp.text[:300]}"
    assert "json" in ctype.lower()
    data = resp.json()
    assert isinstance(data, list)
    for space in data:
        assert isinstance(space["id"], int)
        assert space["kind"] in {"room", "fridge"}
        assert isinstance(space["name"], str) and space["name"]


def test_contract_space_layout_shape(api_base_url, skip_if_no_api):
    base = api_base_url.rstrip("/")
    _, _, resp = _get_json(f"{base}/cellars/1/spaces")
    spaces = resp.json()
    if not spaces:
        pytest.skip("No spaces in cellar 1 to inspect")

    status, _, resp = _get_json(f"{base}/spaces/{spaces[0]['id']}/racks")
    assert status == 200
    layout = resp.json()
    for key in ("space", "walls", "racks", "rack_occupancy", "wall_occupancy", "occupancy"):
        assert key in layout
    for occ in layout["rack_occupancy"]:
        assert 0 <= occ["filled"] <= occ["total"]

    for rack in layout["racks"]:
        status, _, resp = _get_json(f"{base}/racks/{rack['id']}")
        assert status == 200
        state = resp.json()
        assert set(state) >= {"rack", "slots", "bin_bottles", "labels"}
        if rack["kind"] == "bin":
            per_cell = {}
            for bottle in state["bin_bottles"]:
                cell = (bottle["bin_row"], bottle["bin_column"])
                per_cell[cell] = per_cell.get(cell, 0) + 1
            assert all(n <= rack["capacity"] for n in per_cell.values())


def test_contract_unknown_rack_is_404(api_base_url, skip_if_no_api):
    status, _, resp = _get_json(f"{api_base_url.rstrip('/')}/racks/987654321")
    assert status == 404
    assert resp.json()["kind"] == "RackNotFound"
