"""Keyed byte stores with per-key expiry.

Two implementations of one protocol:
- RedisSnapshotStore: delegates to the shared Redis module (storage.cache)
- MemorySnapshotStore: in-process dict with an injectable clock, used
  when no Redis is configured and in tests
"""

from __future__ import annotations

import math
import time
from typing import Callable, Protocol, runtime_checkable

from screener.storage import cache
from screener.storage.cache import TTL_MISSING, TTL_PERSISTENT


@runtime_checkable
class SnapshotStore(Protocol):
    """Keyed string store supporting get, set-with-expiry and TTL queries."""

    async def get(self, key: str) -> bytes | None:
        ...

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        ...

    async def ttl(self, key: str) -> int:
        """Seconds remaining; -1 for no expiry, -2 for a missing key."""
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def ping(self) -> bool:
        ...


class RedisSnapshotStore:
    """SnapshotStore backed by the module-level Redis client."""

    async def get(self, key: str) -> bytes | None:
        return await cache.get(key)

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        return await cache.set(key, value, ttl)

    async def ttl(self, key: str) -> int:
        return await cache.ttl(key)

    async def delete(self, key: str) -> bool:
        return await cache.delete(key)

    async def ping(self) -> bool:
        return await cache.ping()


class MemorySnapshotStore:
    """In-process SnapshotStore.

    Entries expire lazily on access. Remaining TTL is rounded up to whole
    seconds so a live key never reports 0.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[bytes, float | None]] = {}

    def _live(self, key: str) -> tuple[bytes, float | None] | None:
        item = self._data.get(key)
        if item is None:
            return None
        expires_at = item[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return item

    async def get(self, key: str) -> bytes | None:
        item = self._live(key)
        return item[0] if item else None

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (value, expires_at)
        return True

    async def ttl(self, key: str) -> int:
        item = self._live(key)
        if item is None:
            return TTL_MISSING
        if item[1] is None:
            return TTL_PERSISTENT
        return math.ceil(item[1] - self._clock())

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._data)
