from __future__ import annotations

from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager, nullcontext
from typing import Protocol

from core.addressing import CellAddress, decode_cell_key
from core.dtos import RackDTO
from core.errors import AddressOutOfBounds, RackNotFound
from core.labels import LabelRegistry
from core.topology import is_valid_cell
from core.utils.logging import get_logger

log = get_logger(__name__)


class RackLabelsRepo(Protocol):
    def get(self, rack_id: int) -> RackDTO | None: ...
    def save_labels(self, rack_id: int, labels: LabelRegistry) -> None: ...
    def save_name(self, rack_id: int, name: str | None) -> None: ...


class LabelService:
    """Per-rack cell labels and the rack's display name."""

    def __init__(
        self,
        racks: RackLabelsRepo,
        *,
        atomic: Callable[[], AbstractContextManager] = nullcontext,
    ) -> None:
        self._racks = racks
        self._atomic = atomic

    def _rack(self, rack_id: int) -> RackDTO:
        rack = self._racks.get(rack_id)
        if rack is None:
            raise RackNotFound(rack_id=rack_id)
        return rack

    def _check(self, rack: RackDTO, address: CellAddress) -> CellAddress:
        address = CellAddress(*address)
        if not is_valid_cell(rack, address):
            raise AddressOutOfBounds(rack_id=rack.id, row=address.row, column=address.column)
        return address

    def get_labels(self, rack_id: int) -> LabelRegistry:
        return LabelRegistry.from_wire(self._rack(rack_id).labels)

    def get_label(self, rack_id: int, address: CellAddress) -> str | None:
        return self.get_labels(rack_id).get(address)

    def set_label(self, rack_id: int, address: CellAddress, text: str | None) -> LabelRegistry:
        """Set or (with blank text) clear one cell label."""
        with self._atomic():
            rack = self._rack(rack_id)
            address = self._check(rack, address)
            labels = LabelRegistry.from_wire(rack.labels)
            labels.set(address, text)
            self._racks.save_labels(rack_id, labels)
        log.info("rack %s label %s -> %r", rack_id, tuple(address), labels.get(address))
        return labels

    def replace_labels(self, rack_id: int, mapping: Mapping[str, str] | None) -> LabelRegistry:
        """
        Replace the whole label map from its wire form.

        Raises ValueError for a key that does not parse, a non-text value, or
        two keys naming the same cell (``"1-3"`` and ``"01-3"``), and
        AddressOutOfBounds for a cell outside the rack. Blank values are
        dropped.
        """
        entries = dict(mapping or {})
        seen: dict[CellAddress, str] = {}
        for key, text in entries.items():
            address = decode_cell_key(key)
            if text is not None and not isinstance(text, str):
                raise ValueError(f"Label for {key!r} must be text")
            if address in seen:
                raise ValueError(f"Label keys {seen[address]!r} and {key!r} name the same cell")
            seen[address] = key
        with self._atomic():
            rack = self._rack(rack_id)
            for address in seen:
                self._check(rack, address)
            labels = LabelRegistry.from_wire(entries)
            self._racks.save_labels(rack_id, labels)
        log.info("rack %s labels replaced (%d entries)", rack_id, len(labels))
        return labels

    def rename_rack(self, rack_id: int, name: str | None) -> RackDTO:
        cleaned = (name or "").strip() or None
        with self._atomic():
            self._rack(rack_id)
            self._racks.save_name(rack_id, cleaned)
        return self._rack(rack_id)
