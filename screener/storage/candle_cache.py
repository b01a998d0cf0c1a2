"""Short-lived side cache for candle fetches.

Keyed by the full request (symbol, interval, start_time, end_time) so
repeated historical lookups within a few minutes hit the exchange once.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from screener.clients.symbols import ExpiringValue
from screener_core.models.candle import CandleSeries

logger = logging.getLogger(__name__)

CandleKey = tuple[str, str, int | None, int | None]


class CandleCache:
    """In-memory candle cache with per-entry expiry and a size cap."""

    def __init__(
        self,
        ttl: float = 300.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[CandleKey, ExpiringValue[CandleSeries]] = {}

    @staticmethod
    def make_key(
        symbol: str,
        interval: str,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> CandleKey:
        return (symbol, interval, start_time, end_time)

    def get(self, key: CandleKey) -> CandleSeries | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_valid(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def put(self, key: CandleKey, series: CandleSeries) -> None:
        now = self._clock()
        self._entries.pop(key, None)
        if len(self._entries) >= self.max_entries:
            self._evict(now)
        self._entries[key] = ExpiringValue(series, now + self.ttl)

    def _evict(self, now: float) -> None:
        """Drop expired entries, then the oldest ones until under the cap."""
        expired = [k for k, v in self._entries.items() if not v.is_valid(now)]
        for key in expired:
            del self._entries[key]

        while self._entries and len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

        if expired:
            logger.debug(f"Evicted {len(expired)} expired candle entries")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
