"""Error taxonomy for the storage placement engine.

Every placement error is recoverable and local: it rejects the attempted
operation and never leaves committed state half-written. ``kind`` is the
stable name surfaced to API clients (``{"error": ..., "kind": ...}``).
"""

from __future__ import annotations


class PlacementError(Exception):
    kind = "PlacementError"
    default_message = "Placement rejected"

    def __init__(self, message: str | None = None, **context) -> None:
        super().__init__(message or self.default_message)
        self.context = context

    def to_payload(self) -> dict:
        payload = {"error": str(self), "kind": self.kind}
        payload.update({k: v for k, v in self.context.items() if v is not None})
        return payload


class SlotOccupied(PlacementError):
    kind = "SlotOccupied"
    default_message = "Slot is already occupied"


class SlotEmpty(PlacementError):
    kind = "SlotEmpty"
    default_message = "Slot is empty"


class BinFull(PlacementError):
    kind = "BinFull"
    default_message = "Bin is full"


class InsufficientQuantity(PlacementError):
    kind = "InsufficientQuantity"
    default_message = "No unplaced bottles left for this lot"


class RackNotFound(PlacementError):
    kind = "RackNotFound"
    default_message = "Rack not found"


class AddressOutOfBounds(PlacementError):
    kind = "AddressOutOfBounds"
    default_message = "Address is outside the rack"


class WrongRackKind(PlacementError):
    kind = "WrongRackKind"
    default_message = "Operation not supported by this rack type"


class NotFound(PlacementError):
    kind = "NotFound"
    default_message = "Bottle not found"


class LotNotFound(PlacementError):
    kind = "LotNotFound"
    default_message = "Inventory lot not found"


class NetworkFailure(PlacementError):
    kind = "NetworkFailure"
    default_message = "Inventory service unreachable"


# --------------------------------------------------------------------------- topology CRUD


class TopologyError(Exception):
    kind = "TopologyError"

    def to_payload(self) -> dict:
        return {"error": str(self), "kind": self.kind}


class SpaceNotFound(TopologyError):
    kind = "SpaceNotFound"


class WallNotFound(TopologyError):
    kind = "WallNotFound"


class InvalidDimensions(TopologyError):
    kind = "InvalidDimensions"


class DuplicateWall(TopologyError):
    kind = "DuplicateWall"
