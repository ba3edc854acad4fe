"""
Cellar storage JSON API (lightweight HTTP server, no framework).

Routes:
* GET    /api/cellars/<id>/spaces          – spaces of a cellar
* POST   /api/cellars/<id>/spaces          – create space (room walls optional)
* GET    /api/spaces/<id>/racks            – space layout with occupancy
* GET    /api/spaces/<id>/candidates?q=    – lots with bottles left to place
* POST   /api/spaces/<id>/walls            – add wall
* POST   /api/spaces/<id>/racks            – create rack
* PATCH  /api/spaces/<id>                  – rename space
* GET    /api/racks/<id>                   – rack state (slots/bin bottles/labels)
* GET    /api/racks/<id>/available?lot_id= – available quantity
* POST   /api/racks/<id>/slots/place       – place one bottle in a grid slot
* POST   /api/racks/<id>/slots/remove      – free a grid slot
* POST   /api/racks/<id>/bins/add          – add bottle(s) to a bin cell
* POST   /api/racks/<id>/bins/remove       – remove one bin bottle
* PATCH  /api/racks/<id>/labels            – set a label, replace labels, rename rack
* DELETE /api/racks/<id>, /api/walls/<id>, /api/spaces/<id>

Errors come back as {"error": message, "kind": Kind}.

Usage:
    python3 src/app/server.py
"""

from __future__ import annotations

import json
import re
import sqlite3
import sys
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlparse

# Ensure repo root is on sys.path when running as `python3 src/app/server.py`
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(REPO_ROOT / "src"))

from app.di import (  # noqa: E402
    label_service_for_conn,
    placement_service_for_conn,
    topology_service_for_conn,
)
from app.settings import get_settings  # noqa: E402
from core.errors import (  # noqa: E402
    AddressOutOfBounds,
    BinFull,
    DuplicateWall,
    InsufficientQuantity,
    InvalidDimensions,
    LotNotFound,
    NetworkFailure,
    NotFound,
    PlacementError,
    RackNotFound,
    SlotEmpty,
    SlotOccupied,
    SpaceNotFound,
    TopologyError,
    WallNotFound,
    WrongRackKind,
)
from core.utils.logging import get_logger  # noqa: E402
from infra.db.conn import get_conn  # noqa: E402

log = get_logger(__name__)

_STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (RackNotFound, 404),
    (NotFound, 404),
    (LotNotFound, 404),
    (SpaceNotFound, 404),
    (WallNotFound, 404),
    (AddressOutOfBounds, 400),
    (WrongRackKind, 400),
    (InvalidDimensions, 400),
    (SlotOccupied, 409),
    (SlotEmpty, 409),
    (BinFull, 409),
    (InsufficientQuantity, 409),
    (DuplicateWall, 409),
    (NetworkFailure, 502),
]

_REQUIRED = object()


class BadRequest(ValueError):
    kind = "BadRequest"


def status_for(exc: Exception) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


def _int_field(data: dict, key: str, default=_REQUIRED) -> int:
    value = data.get(key)
    if value is None or value == "":
        if default is _REQUIRED:
            raise BadRequest(f"{key} is required")
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise BadRequest(f"{key} must be an integer") from exc


def _dump(model) -> dict:
    return model.model_dump(mode="json")


# --------------------------------------------------------------------------- request-handler
class Handler(BaseHTTPRequestHandler):
    # Swapped by tests for a connection to a temporary database
    conn_factory: Callable[[], sqlite3.Connection] = staticmethod(get_conn)

    def log_message(self, format, *args):  # noqa: A002
        log.debug("%s - %s", self.address_string(), format % args)

    # ------------------------------ JSON helpers
    def _send_json(self, status: int, payload) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _read_json(self) -> dict:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            length = 0
        body = self.rfile.read(length) if length else b""
        if not body:
            return {}
        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise BadRequest("Request body is not valid JSON") from exc
        if not isinstance(data, dict):
            raise BadRequest("Request body must be a JSON object")
        return data

    def _dispatch(self, route: Callable[[sqlite3.Connection, str, dict, dict], None]) -> None:
        parsed = urlparse(self.path)
        if not parsed.path.startswith("/api/"):
            return self._send_json(404, {"error": "Not Found", "kind": "NotFound"})
        conn = None
        try:
            data = self._read_json() if self.command in {"POST", "PATCH"} else {}
            conn = self.conn_factory()
            route(conn, parsed.path, parse_qs(parsed.query), data)
        except (PlacementError, TopologyError) as exc:
            self._send_json(status_for(exc), exc.to_payload())
        except ValueError as exc:
            # BadRequest plus enum parsing failures
            self._send_json(400, {"error": str(exc), "kind": getattr(exc, "kind", "BadRequest")})
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("unhandled error on %s %s", self.command, self.path)
            self._send_json(500, {"error": str(exc), "kind": "InternalError"})
        finally:
            if conn is not None:
                conn.close()

    def do_GET(self):  # noqa: N802
        self._dispatch(self._route_get)

    def do_POST(self):  # noqa: N802
        self._dispatch(self._route_post)

    def do_PATCH(self):  # noqa: N802
        self._dispatch(self._route_patch)

    def do_DELETE(self):  # noqa: N802
        self._dispatch(self._route_delete)

    # ------------------------------ API GET router
    def _route_get(self, conn, path, qs, data):
        m = re.match(r"^/api/racks/(\d+)$", path)
        if m:
            state = placement_service_for_conn(conn).fetch_rack_state(int(m.group(1)))
            return self._send_json(200, _dump(state))

        m = re.match(r"^/api/racks/(\d+)/available$", path)
        if m:
            rack_id = int(m.group(1))
            lot_id = _int_field({"lot_id": qs.get("lot_id", [None])[0]}, "lot_id")
            available = placement_service_for_conn(conn).available_quantity(lot_id, rack_id)
            return self._send_json(
                200, {"rack_id": rack_id, "lot_id": lot_id, "available": available}
            )

        m = re.match(r"^/api/spaces/(\d+)/racks$", path)
        if m:
            layout = topology_service_for_conn(conn).get_space_layout(int(m.group(1)))
            return self._send_json(200, _dump(layout))

        m = re.match(r"^/api/spaces/(\d+)/candidates$", path)
        if m:
            query = qs.get("q", [""])[0]
            lots = placement_service_for_conn(conn).search_unplaced_candidates(
                int(m.group(1)), query
            )
            return self._send_json(200, [_dump(lot) for lot in lots])

        m = re.match(r"^/api/cellars/(\d+)/spaces$", path)
        if m:
            spaces = topology_service_for_conn(conn).list_spaces(int(m.group(1)))
            return self._send_json(200, [_dump(s) for s in spaces])

        return self._send_json(404, {"error": "Not Found", "kind": "NotFound"})

    # ------------------------------ API write methods
    def _route_post(self, conn, path, qs, data):
        # Create space
        m = re.match(r"^/api/cellars/(\d+)/spaces$", path)
        if m:
            space = topology_service_for_conn(conn).create_space(
                int(m.group(1)),
                str(data.get("name") or ""),
                _kind_field(data),
                walls=data.get("walls") or (),
            )
            return self._send_json(201, _dump(space))

        # Add wall
        m = re.match(r"^/api/spaces/(\d+)/walls$", path)
        if m:
            wall = topology_service_for_conn(conn).add_wall(
                int(m.group(1)), str(data.get("position") or "")
            )
            return self._send_json(201, _dump(wall))

        # Create rack
        m = re.match(r"^/api/spaces/(\d+)/racks$", path)
        if m:
            rack = topology_service_for_conn(conn).create_rack(
                int(m.group(1)),
                _kind_field(data),
                columns=_int_field(data, "columns"),
                rows=_int_field(data, "rows"),
                depth=_int_field(data, "depth", 1),
                capacity=_int_field(data, "capacity", None),
                wall_id=_int_field(data, "wall_id", None),
                name=data.get("name"),
            )
            return self._send_json(201, _dump(rack))

        m = re.match(r"^/api/racks/(\d+)/slots/place$", path)
        if m:
            slot = placement_service_for_conn(conn).place_in_slot(
                int(m.group(1)),
                _int_field(data, "row"),
                _int_field(data, "column"),
                _int_field(data, "depth_position", 1),
                _int_field(data, "lot_id"),
            )
            return self._send_json(201, _dump(slot))

        m = re.match(r"^/api/racks/(\d+)/slots/remove$", path)
        if m:
            rack_id = int(m.group(1))
            service = placement_service_for_conn(conn)
            service.remove_from_slot(
                rack_id,
                _int_field(data, "row"),
                _int_field(data, "column"),
                _int_field(data, "depth_position", 1),
            )
            return self._send_json(200, _dump(service.fetch_rack_state(rack_id)))

        m = re.match(r"^/api/racks/(\d+)/bins/add$", path)
        if m:
            return self._bins_add(conn, int(m.group(1)), data)

        m = re.match(r"^/api/racks/(\d+)/bins/remove$", path)
        if m:
            rack_id = int(m.group(1))
            service = placement_service_for_conn(conn)
            service.remove_bin_bottle(_int_field(data, "bin_bottle_id"), rack_id=rack_id)
            return self._send_json(200, _dump(service.fetch_rack_state(rack_id)))

        return self._send_json(404, {"error": "Not Found", "kind": "NotFound"})

    def _bins_add(self, conn, rack_id: int, data: dict):
        """
        Three shapes: one bottle ({row, column, lot_id}), several of one lot
        ({..., count}), or a staged selection ({row, column, items: [{lot_id,
        quantity}]}). Multi-bottle adds stop at the first failure and answer
        409 with what was committed plus the refreshed rack state.
        """
        service = placement_service_for_conn(conn)
        row, column = _int_field(data, "row"), _int_field(data, "column")

        items = data.get("items")
        if items is not None:
            if not isinstance(items, list):
                raise BadRequest("items must be a list")
            staging = service.open_staging(rack_id, row, column)
            for item in items:
                if not isinstance(item, dict):
                    raise BadRequest("items entries must be objects")
                staging.adjust(_int_field(item, "lot_id"), _int_field(item, "quantity", 1))
            result = service.commit_staging(staging)
        else:
            lot_id = _int_field(data, "lot_id")
            count = _int_field(data, "count", 1)
            if count < 1:
                raise BadRequest("count must be at least 1")
            if count == 1:
                bottle = service.place_in_bin(rack_id, row, column, lot_id)
                return self._send_json(201, _dump(bottle))
            result = service.place_many_in_bin(rack_id, row, column, lot_id, count)

        payload = _dump(result)
        payload["ok"] = result.ok
        if result.ok:
            return self._send_json(201, payload)
        payload["kind"] = result.error_kind
        return self._send_json(409, payload)

    def _route_patch(self, conn, path, qs, data):
        m = re.match(r"^/api/racks/(\d+)/labels$", path)
        if m:
            rack_id = int(m.group(1))
            labels = label_service_for_conn(conn)
            if "labels" in data:
                mapping = data.get("labels") or {}
                if not isinstance(mapping, dict):
                    raise BadRequest("labels must be an object")
                labels.replace_labels(rack_id, mapping)
            if "row" in data or "column" in data:
                address = (_int_field(data, "row"), _int_field(data, "column"))
                labels.set_label(rack_id, address, data.get("text"))
            if "name" in data:
                labels.rename_rack(rack_id, data.get("name"))
            rack = topology_service_for_conn(conn).get_rack(rack_id)
            return self._send_json(200, {"id": rack.id, "name": rack.name, "labels": rack.labels})

        m = re.match(r"^/api/spaces/(\d+)$", path)
        if m:
            space = topology_service_for_conn(conn).rename_space(
                int(m.group(1)), str(data.get("name") or "")
            )
            return self._send_json(200, _dump(space))

        return self._send_json(404, {"error": "Not Found", "kind": "NotFound"})

    def _route_delete(self, conn, path, qs, data):
        topology = topology_service_for_conn(conn)

        m = re.match(r"^/api/racks/(\d+)$", path)
        if m:
            rack_id = int(m.group(1))
            freed = topology.delete_rack(rack_id)
            return self._send_json(200, {"deleted": rack_id, "unassigned": freed})

        m = re.match(r"^/api/walls/(\d+)$", path)
        if m:
            wall_id = int(m.group(1))
            freed = topology.delete_wall(wall_id)
            return self._send_json(200, {"deleted": wall_id, "unassigned": freed})

        m = re.match(r"^/api/spaces/(\d+)$", path)
        if m:
            space_id = int(m.group(1))
            freed = topology.delete_space(space_id)
            return self._send_json(200, {"deleted": space_id, "unassigned": freed})

        return self._send_json(404, {"error": "Not Found", "kind": "NotFound"})


def _kind_field(data: dict) -> str:
    kind = str(data.get("kind") or "").strip()
    if not kind:
        raise BadRequest("kind is required")
    return kind


# --------------------------------------------------------------------------- bootstrap
def main():
    settings = get_settings()
    httpd = HTTPServer((settings.host, settings.port), Handler)
    log.info("Serving on http://%s:%s  – Ctrl+C to quit", settings.host, settings.port)
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        log.info("Stopping…")
    finally:
        httpd.server_close()


if __name__ == "__main__":
    main()
