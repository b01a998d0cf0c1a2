"""Redis cache layer for indicator snapshots.

Holds one module-level connection pool. Every operation degrades to a
miss / failed write when Redis is unavailable or errors, and logs a
warning instead of raising.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from screener.config import get_settings

logger = logging.getLogger(__name__)

# Global connection pool
_pool: ConnectionPool | None = None
_client: redis.Redis | None = None


# =============================================================================
# Key prefixes for different data types
# =============================================================================

KEY_PREFIX_INDICATOR = "indicator:"  # Snapshots: indicator:{symbol}:{timeframe}

# TTL reply for a missing key
TTL_MISSING = -2
# TTL reply for a key without expiry
TTL_PERSISTENT = -1


# =============================================================================
# Connection management
# =============================================================================

async def init_cache(redis_url: str | None = None) -> bool:
    """Initialize Redis connection pool.

    Args:
        redis_url: Connection URL (defaults to settings.redis_url)

    Returns:
        True if Redis answered PING
    """
    global _pool, _client

    if _client is not None:
        return True

    url = redis_url or get_settings().redis_url
    _pool = ConnectionPool.from_url(
        url,
        max_connections=50,
        decode_responses=False,  # We handle encoding ourselves with orjson
    )
    _client = redis.Redis(connection_pool=_pool)

    # Test connection
    try:
        await _client.ping()
        logger.info(f"Redis connected: {url}")
        return True
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}. Cache will be disabled.")
        await _client.aclose()
        await _pool.disconnect()
        _client = None
        _pool = None
        return False


async def close_cache() -> None:
    """Close Redis connection pool."""
    global _pool, _client

    if _client is not None:
        await _client.aclose()
        _client = None

    if _pool is not None:
        await _pool.disconnect()
        _pool = None

    logger.info("Redis connection closed")


# =============================================================================
# Basic operations
# =============================================================================

async def get(key: str) -> bytes | None:
    """Get a value from cache.

    Args:
        key: Cache key

    Returns:
        Raw bytes or None if not found/cache unavailable
    """
    if _client is None:
        return None

    try:
        return await _client.get(key)
    except redis.RedisError as e:
        logger.warning(f"Redis GET error: {e}")
        return None


async def set(
    key: str,
    value: bytes,
    ttl: int | None = None,
) -> bool:
    """Set a value in cache.

    Args:
        key: Cache key
        value: Raw bytes to store
        ttl: Time-to-live in seconds (None for no expiry)

    Returns:
        True if successful, False otherwise
    """
    if _client is None:
        return False

    try:
        if ttl:
            await _client.setex(key, ttl, value)
        else:
            await _client.set(key, value)
        return True
    except redis.RedisError as e:
        logger.warning(f"Redis SET error: {e}")
        return False


async def ttl(key: str) -> int:
    """Get the remaining time-to-live of a key.

    Args:
        key: Cache key

    Returns:
        Seconds remaining, -1 if the key has no expiry, -2 if missing
        (or the cache is unavailable)
    """
    if _client is None:
        return TTL_MISSING

    try:
        return int(await _client.ttl(key))
    except redis.RedisError as e:
        logger.warning(f"Redis TTL error: {e}")
        return TTL_MISSING


async def delete(key: str) -> bool:
    """Delete a key from cache.

    Args:
        key: Cache key

    Returns:
        True if deleted, False otherwise
    """
    if _client is None:
        return False

    try:
        await _client.delete(key)
        return True
    except redis.RedisError as e:
        logger.warning(f"Redis DELETE error: {e}")
        return False


# =============================================================================
# Health check
# =============================================================================

async def ping() -> bool:
    """Check if Redis is responsive.

    Returns:
        True if Redis responds to PING
    """
    if _client is None:
        return False

    try:
        return await _client.ping()
    except redis.RedisError:
        return False
