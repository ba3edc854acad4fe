"""Sparse per-rack label map keyed by cell address."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping

from core.addressing import CellAddress, decode_cell_key, encode_cell_key


class LabelRegistry:
    """
    Composite-key map ``CellAddress -> text``.

    Blank labels are never stored: setting an empty or whitespace-only text
    removes the entry. Keys loaded from the wire keep their exact text and
    their order when written back.
    """

    def __init__(self) -> None:
        self._labels: dict[CellAddress, str] = {}
        self._wire_keys: dict[CellAddress, str] = {}

    @classmethod
    def from_wire(cls, data: Mapping[str, str] | str | None) -> LabelRegistry:
        """Build from a ``{"row-col": text}`` mapping or its JSON text.

        Malformed JSON, non-mapping payloads, malformed keys and blank values
        are dropped, so a damaged label column never blocks the rack view.
        When two keys decode to the same cell the later one wins; callers
        accepting user input check for that first.
        """
        registry = cls()
        if isinstance(data, str):
            try:
                data = json.loads(data or "{}")
            except json.JSONDecodeError:
                data = {}
        if not isinstance(data, Mapping):
            return registry
        for key, text in data.items():
            try:
                address = decode_cell_key(key)
            except ValueError:
                continue
            if not isinstance(text, str) or not text.strip():
                continue
            registry._labels[address] = text.strip()
            registry._wire_keys[address] = str(key)
        return registry

    def get(self, address: CellAddress) -> str | None:
        return self._labels.get(CellAddress(*address))

    def set(self, address: CellAddress, text: str | None) -> None:
        address = CellAddress(*address)
        cleaned = (text or "").strip()
        if not cleaned:
            self._labels.pop(address, None)
            self._wire_keys.pop(address, None)
            return
        self._labels[address] = cleaned

    def to_wire(self) -> dict[str, str]:
        return {
            self._wire_keys.get(address, encode_cell_key(address)): text
            for address, text in self._labels.items()
        }

    def to_json(self) -> str:
        return json.dumps(self.to_wire())

    def __iter__(self) -> Iterator[tuple[CellAddress, str]]:
        return iter(self._labels.items())

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, address) -> bool:
        return CellAddress(*address) in self._labels
