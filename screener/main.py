"""Main application entry point."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass

from screener.clients import BinanceRestClient, SymbolDirectory
from screener.config import Settings, get_settings
from screener.services import CacheOrchestrator, CandleService, SignalScanner
from screener.storage import (
    CandleCache,
    IndicatorCache,
    MemorySnapshotStore,
    RedisSnapshotStore,
    SnapshotStore,
    cache,
)
from screener_core.errors import FatalStartupError

# Startup timeout in seconds for each connectivity check
STARTUP_TIMEOUT = 30

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


@dataclass
class Services:
    """Wired application services."""

    settings: Settings
    client: BinanceRestClient
    store: SnapshotStore
    symbols: SymbolDirectory
    indicator_cache: IndicatorCache
    candles: CandleService
    orchestrator: CacheOrchestrator
    scanner: SignalScanner


async def _check(name: str, is_reachable) -> None:
    try:
        ok = await asyncio.wait_for(is_reachable(), timeout=STARTUP_TIMEOUT)
    except asyncio.TimeoutError:
        ok = False
    if not ok:
        raise FatalStartupError(f"{name} is unreachable; refusing to start cache population")
    logger.info(f"{name} reachable")


async def startup(
    settings: Settings | None = None,
    client: BinanceRestClient | None = None,
    store: SnapshotStore | None = None,
    start: bool = True,
) -> Services:
    """
    Connect collaborators, verify them and start the orchestrator.

    Args:
        settings: Settings (defaults to get_settings())
        client: Exchange client (built from settings if omitted)
        store: Snapshot store (built from settings.cache_backend if omitted)
        start: Start population and the sweep loop

    Returns:
        Services

    Raises:
        FatalStartupError: If the cache store or the exchange is unreachable
    """
    settings = settings or get_settings()
    logger.info("Starting market screener...")

    if store is None:
        if settings.cache_backend == "redis":
            await cache.init_cache(settings.redis_url)
            store = RedisSnapshotStore()
        else:
            store = MemorySnapshotStore()
    client = client or BinanceRestClient.from_settings(settings)

    try:
        await _check("Cache store", store.ping)
        await _check("Binance API", client.ping)
    except FatalStartupError:
        await client.close()
        await cache.close_cache()
        raise

    symbols = SymbolDirectory(client, settings.quote_asset, settings.symbols_cache_ttl)
    indicator_cache = IndicatorCache(store, ttl=settings.indicator_ttl)
    candles = CandleService(
        client,
        CandleCache(ttl=settings.candle_cache_ttl),
        limit=settings.candle_limit,
    )
    orchestrator = CacheOrchestrator(candles, symbols, indicator_cache, settings)
    scanner = SignalScanner(orchestrator, symbols, batch_size=settings.batch_size)

    services = Services(
        settings=settings,
        client=client,
        store=store,
        symbols=symbols,
        indicator_cache=indicator_cache,
        candles=candles,
        orchestrator=orchestrator,
        scanner=scanner,
    )

    if start:
        await orchestrator.start(populate_on_start=True)
    return services


async def shutdown(services: Services) -> None:
    """Stop background work and close connections."""
    logger.info("Shutting down...")
    await services.orchestrator.stop()
    await services.client.close()
    await cache.close_cache()
    logger.info("Shutdown complete")


async def run(settings: Settings | None = None) -> None:
    """Run until SIGINT/SIGTERM."""
    services = await startup(settings)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops
            pass

    try:
        await stop_event.wait()
    finally:
        await shutdown(services)


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    try:
        asyncio.run(run(settings))
    except FatalStartupError as e:
        logger.critical(f"Startup failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
