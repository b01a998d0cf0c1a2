"""Indicator snapshot cache.

Snapshots are stored as orjson-encoded JSON under
``indicator:{symbol}:{timeframe}`` with a per-entry TTL. The store only
reports remaining TTL, so the insertion time of an entry is derived as
``now - (ttl - remaining)``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

import orjson
from pydantic import ValidationError

from screener.storage.cache import KEY_PREFIX_INDICATOR, TTL_PERSISTENT
from screener.storage.stores import SnapshotStore
from screener_core.models.snapshot import IndicatorSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300
DEFAULT_UPDATE_THRESHOLD = 60


def indicator_key(symbol: str, timeframe: str) -> str:
    """Get the cache key for a snapshot."""
    return f"{KEY_PREFIX_INDICATOR}{symbol}:{timeframe}"


def encode_snapshot(snapshot: IndicatorSnapshot) -> bytes:
    return orjson.dumps(snapshot.model_dump())


def decode_snapshot(data: bytes) -> IndicatorSnapshot:
    return IndicatorSnapshot.model_validate(orjson.loads(data))


@dataclass(slots=True, frozen=True)
class CacheEntry:
    """A cached snapshot with its freshness window."""

    key: str
    value: IndicatorSnapshot
    inserted_at: float
    ttl_seconds: int

    @property
    def expires_at(self) -> float:
        return self.inserted_at + self.ttl_seconds

    def remaining(self, now: float) -> float:
        """Seconds of life left (negative once expired)."""
        return self.expires_at - now

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at

    def needs_refresh(self, now: float, threshold: float = DEFAULT_UPDATE_THRESHOLD) -> bool:
        """True once remaining life is at or below the threshold, or below half the TTL."""
        remaining = self.remaining(now)
        return remaining <= threshold or remaining < self.ttl_seconds / 2


class IndicatorCache:
    """Typed view over a SnapshotStore for indicator snapshots."""

    def __init__(
        self,
        store: SnapshotStore,
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl = ttl
        self._clock = clock

    async def get_entry(self, symbol: str, timeframe: str) -> CacheEntry | None:
        """
        Load a snapshot with its freshness metadata.

        Args:
            symbol: Trading pair
            timeframe: Timeframe

        Returns:
            CacheEntry, or None on a miss or an undecodable value
        """
        key = indicator_key(symbol, timeframe)
        data = await self.store.get(key)
        if data is None:
            return None

        remaining = await self.store.ttl(key)
        if remaining == TTL_PERSISTENT:
            remaining = self.ttl
        elif remaining < 0:
            return None

        try:
            snapshot = decode_snapshot(data)
        except (orjson.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Dropping undecodable snapshot {key}: {e}")
            await self.store.delete(key)
            return None

        now = self._clock()
        return CacheEntry(
            key=key,
            value=snapshot,
            inserted_at=now - (self.ttl - remaining),
            ttl_seconds=self.ttl,
        )

    async def put(self, snapshot: IndicatorSnapshot) -> bool:
        """Store a snapshot, replacing any previous entry for its key."""
        key = indicator_key(snapshot.symbol, snapshot.timeframe)
        return await self.store.set(key, encode_snapshot(snapshot), self.ttl)
