import pytest
import requests

from core.errors import NetworkFailure
from infra.http import inventory_client as client_mod
from infra.http.inventory_client import InventoryApiClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        return self._payload


@pytest.fixture
def calls(monkeypatch):
    """Queue of responses (or exceptions) returned by requests.get, in order."""
    queue = []
    seen = []

    def fake_get(url, headers=None, params=None, timeout=None):
        seen.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(client_mod.requests, "get", fake_get)
    return queue, seen


def _client(**kwargs):
    sleeps = []
    client = InventoryApiClient(
        "https://cellar.example/", token="t0k", sleep=sleeps.append, **kwargs
    )
    return client, sleeps


def test_get_lot_sends_bearer_and_converts(calls):
    queue, seen = calls
    queue.append(FakeResponse(200, {"lot": {"id": 7, "wineName": "Barolo", "qty": 3}}))
    client, _ = _client()
    lot = client.get_lot(7)
    assert (lot.id, lot.wine_name, lot.quantity) == (7, "Barolo", 3)
    assert seen[0]["url"] == "https://cellar.example/api/inventory/7"
    assert seen[0]["headers"]["Authorization"] == "Bearer t0k"


def test_get_lot_404_is_none(calls):
    queue, _ = calls
    queue.append(FakeResponse(404))
    client, _ = _client()
    assert client.get_lot(1) is None


def test_list_lots_passes_cellar_and_limit(calls):
    queue, seen = calls
    queue.append(FakeResponse(200, {"lots": [{"id": 1, "wineName": "A", "quantity": 2}]}))
    client, _ = _client()
    lots = client.list_lots(3)
    assert [lot.id for lot in lots] == [1]
    assert seen[0]["params"] == {"limit": "500", "cellarId": 3}


def test_list_lots_accepts_bare_list(calls):
    queue, _ = calls
    queue.append(FakeResponse(200, [{"id": 2, "wineName": "B"}]))
    client, _ = _client()
    assert client.list_lots()[0].quantity == 1


def test_retries_transient_status_then_succeeds(calls):
    queue, seen = calls
    queue.extend(
        [
            FakeResponse(503),
            FakeResponse(429, headers={"Retry-After": "2"}),
            FakeResponse(200, {"id": 5, "wineName": "C", "quantity": 1}),
        ]
    )
    client, sleeps = _client()
    assert client.get_lot(5).id == 5
    assert len(seen) == 3
    assert len(sleeps) == 2
    assert 2 <= sleeps[1] <= 2.5


def test_transport_errors_become_network_failure(calls):
    queue, _ = calls
    queue.extend([requests.ConnectionError("down")] * 2)
    client, sleeps = _client(max_retries=2)
    with pytest.raises(NetworkFailure):
        client.get_lot(1)
    assert len(sleeps) == 1


def test_non_retryable_status_raises(calls):
    queue, _ = calls
    queue.append(FakeResponse(500))
    client, _ = _client()
    with pytest.raises(NetworkFailure) as exc:
        client.list_lots(1)
    assert exc.value.to_payload()["status"] == 500


def test_exhausted_retries_on_status(calls):
    queue, _ = calls
    queue.extend([FakeResponse(502)] * 3)
    client, sleeps = _client(max_retries=3)
    with pytest.raises(NetworkFailure):
        client.get_lot(1)
    assert len(sleeps) == 2
