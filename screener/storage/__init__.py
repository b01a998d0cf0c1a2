"""Data storage layer."""

from screener.storage import cache
from screener.storage.candle_cache import CandleCache
from screener.storage.indicator_cache import CacheEntry, IndicatorCache, indicator_key
from screener.storage.stores import MemorySnapshotStore, RedisSnapshotStore, SnapshotStore

__all__ = [
    "cache",
    "SnapshotStore",
    "RedisSnapshotStore",
    "MemorySnapshotStore",
    "IndicatorCache",
    "CacheEntry",
    "indicator_key",
    "CandleCache",
]
