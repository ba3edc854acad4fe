"""HTTP lot ledger backed by the cellar inventory API.

The inventory subsystem owns lot quantities; the placement engine only reads
them. This client keeps network handling, retry and error translation in one
place: transport errors and exhausted retries surface as ``NetworkFailure``
so the engine can treat them like any other recoverable placement error.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import Any

import requests

from app.adapters import api_row_to_lot
from core.dtos import LotDTO
from core.errors import NetworkFailure
from core.utils.logging import get_logger

DEFAULT_TIMEOUT = 30  # seconds
MAX_RETRIES = 5  # total attempts for transient errors
RETRY_STATUS = {429, 502, 503, 504}  # include rate-limit 429
INVENTORY_PAGE_LIMIT = 500

log = get_logger(__name__)


class InventoryApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._sleep = sleep

    # ------------------------------------------------------------------ core helpers
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get_json(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        """GET *path* (relative to base_url) and return decoded JSON, or None on 404.

        Retries the usual transient errors (429, 502, 503, 504) up to
        ``max_retries`` using exponential back-off (1 s, 2 s, 4 s, …) plus a
        small random jitter; 429 honours Retry-After.
        """
        url = path if path.startswith("http") else f"{self.base_url}{path}"

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = requests.get(
                    url, headers=self._headers(), params=params, timeout=self.timeout
                )
            except requests.RequestException as exc:
                if attempt < self.max_retries:
                    log.warning("inventory GET %s failed (%s); retry %d", url, exc, attempt)
                    self._sleep(2 ** (attempt - 1) + random.uniform(0, 0.5))
                    continue
                raise NetworkFailure(f"Inventory service unreachable: {exc}") from exc

            # --- Successful response ---
            if resp.status_code < 400:
                return resp.json()

            if resp.status_code == 404:
                return None

            # --- Retryable responses ---
            if resp.status_code in RETRY_STATUS and attempt < self.max_retries:
                if resp.status_code == 429:
                    delay = float(resp.headers.get("Retry-After", "5"))
                else:
                    delay = 2 ** (attempt - 1)
                delay += random.uniform(0, 0.5)
                log.warning(
                    "inventory GET %s -> %s; retry %d in %.1fs",
                    url,
                    resp.status_code,
                    attempt,
                    delay,
                )
                self._sleep(delay)
                continue

            # --- Non-retryable or final failure ---
            raise NetworkFailure(
                f"Inventory service returned {resp.status_code}", status=resp.status_code
            )

        raise NetworkFailure("Inventory service retries exhausted")

    # ------------------------------------------------------------------ LotLedger
    def get_lot(self, lot_id: int) -> LotDTO | None:
        data = self.get_json(f"/api/inventory/{int(lot_id)}")
        if not data:
            return None
        if isinstance(data, dict) and isinstance(data.get("lot"), dict):
            data = data["lot"]
        return api_row_to_lot(data)

    def list_lots(self, cellar_id: int | None = None) -> list[LotDTO]:
        params: dict[str, Any] = {"limit": str(INVENTORY_PAGE_LIMIT)}
        if cellar_id is not None:
            params["cellarId"] = cellar_id
        data = self.get_json("/api/inventory", params=params)
        if data is None:
            return []
        rows = data.get("lots", []) if isinstance(data, dict) else data
        return [api_row_to_lot(row) for row in rows]
