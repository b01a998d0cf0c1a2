"""Cache orchestrator: keeps indicator snapshots fresh across all keys.

Refresh triggers, in priority order:
1. Key absent
2. Explicit force flag (e.g., on process start)
3. Remaining TTL at/below the update threshold, or below half the TTL

Reads are stale-while-revalidate: a fresh entry is returned as-is, an
entry past its refresh threshold is returned immediately while a
background refresh runs, and an absent entry is computed synchronously.
At most one refresh per key is ever in flight.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable

from screener.clients.symbols import SymbolDirectory
from screener.config import Settings, get_settings
from screener.services.candles import CandleService
from screener.storage.indicator_cache import IndicatorCache, indicator_key
from screener_core.aggregator import build_snapshot_async
from screener_core.errors import DataUnavailable, InsufficientData
from screener_core.models.snapshot import IndicatorSnapshot

logger = logging.getLogger(__name__)

REFRESHED = "refreshed"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(slots=True)
class PopulateReport:
    """Outcome counts of one population pass."""

    refreshed: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.refreshed + self.skipped + self.failed

    def record(self, outcome: str) -> None:
        if outcome == REFRESHED:
            self.refreshed += 1
        elif outcome == SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


@dataclass(slots=True, frozen=True)
class TimeframeStatus:
    """Cached snapshot and remaining TTL for one timeframe."""

    timeframe: str
    snapshot: IndicatorSnapshot | None
    ttl: int | None


class CacheOrchestrator:
    """Owns refresh scheduling for the (symbol, timeframe) snapshot cache."""

    def __init__(
        self,
        candles: CandleService,
        symbols: SymbolDirectory,
        cache: IndicatorCache,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        executor: Executor | None = None,
    ):
        self.candles = candles
        self.symbols = symbols
        self.cache = cache
        self.settings = settings or get_settings()
        self.timeframes: tuple[str, ...] = tuple(self.settings.timeframes)
        self.executor = executor
        self._clock = clock
        self._sleep = sleep

        self._semaphore = asyncio.Semaphore(self.settings.concurrent_requests)
        self._inflight: dict[str, asyncio.Task] = {}
        self._populate_task: asyncio.Task | None = None
        self._sweep_task: asyncio.Task | None = None
        self._running = False

    # =========================================================================
    # Refresh
    # =========================================================================

    async def needs_refresh(self, symbol: str, timeframe: str, force: bool = False) -> bool:
        """Check whether a key should be recomputed."""
        entry = await self.cache.get_entry(symbol, timeframe)
        if entry is None:
            return True
        if force:
            return True
        return entry.needs_refresh(self._clock(), self.settings.update_threshold)

    async def _compute(self, symbol: str, timeframe: str) -> IndicatorSnapshot | None:
        """Fetch, aggregate and store one snapshot."""
        try:
            async with self._semaphore:
                series = await self.candles.fetch(symbol, timeframe)
            snapshot = await build_snapshot_async(
                symbol,
                timeframe,
                series,
                executor=self.executor,
                now=int(self._clock() * 1000),
            )
        except DataUnavailable as e:
            logger.warning(f"No data for {symbol} {timeframe}: {e.reason}")
            return None
        except InsufficientData as e:
            logger.warning(f"Not caching {symbol} {timeframe}: {e}")
            return None

        if not await self.cache.put(snapshot):
            logger.warning(f"Failed to store snapshot {symbol} {timeframe}")
        return snapshot

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Refresh of {key} failed: {task.exception()!r}")

    def _refresh_task(self, symbol: str, timeframe: str) -> tuple[asyncio.Task, bool]:
        """Return the in-flight refresh for a key, starting one if needed."""
        key = indicator_key(symbol, timeframe)
        task = self._inflight.get(key)
        if task is not None and not task.done():
            return task, False

        task = asyncio.create_task(self._compute(symbol, timeframe), name=f"refresh:{key}")
        self._inflight[key] = task
        task.add_done_callback(partial(self._forget, key))
        return task, True

    async def refresh(self, symbol: str, timeframe: str) -> IndicatorSnapshot | None:
        """
        Recompute and store a snapshot.

        Concurrent callers for the same key share one computation.

        Returns:
            The new snapshot, or None if data was unavailable (the previous
            entry, if any, is left in place)
        """
        task, _ = self._refresh_task(symbol, timeframe)
        return await asyncio.shield(task)

    def schedule_refresh(self, symbol: str, timeframe: str) -> bool:
        """Start a background refresh unless one is already running.

        Returns:
            True if a new refresh was started
        """
        _, created = self._refresh_task(symbol, timeframe)
        if created:
            logger.debug(f"Scheduled background refresh for {symbol} {timeframe}")
        return created

    @property
    def inflight(self) -> int:
        """Number of refreshes currently running."""
        return len(self._inflight)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, symbol: str, timeframe: str) -> IndicatorSnapshot | None:
        """
        Read a snapshot (stale-while-revalidate).

        Args:
            symbol: Trading pair
            timeframe: Timeframe

        Returns:
            Cached or freshly computed snapshot, or None if it cannot be built
        """
        entry = await self.cache.get_entry(symbol, timeframe)
        now = self._clock()

        if entry is not None and entry.is_fresh(now):
            if self.settings.background_update and entry.needs_refresh(
                now, self.settings.update_threshold
            ):
                self.schedule_refresh(symbol, timeframe)
            return entry.value

        return await self.refresh(symbol, timeframe)

    async def symbol_overview(self, symbol: str) -> list[TimeframeStatus]:
        """Cached snapshot and TTL per timeframe, without triggering refreshes."""
        now = self._clock()
        entries = await asyncio.gather(
            *(self.cache.get_entry(symbol, tf) for tf in self.timeframes)
        )
        return [
            TimeframeStatus(
                timeframe=tf,
                snapshot=entry.value if entry else None,
                ttl=max(int(entry.remaining(now)), 0) if entry else None,
            )
            for tf, entry in zip(self.timeframes, entries)
        ]

    async def historical_snapshots(
        self, symbol: str, end_time: int
    ) -> dict[str, IndicatorSnapshot | None]:
        """
        Evaluate every timeframe on candles ending at ``end_time``.

        Uses the same aggregation path as live refreshes; results are not
        stored in the snapshot cache.

        Args:
            symbol: Trading pair
            end_time: Window end in epoch ms

        Returns:
            Mapping of timeframe -> snapshot (None where unavailable)
        """

        async def _one(timeframe: str) -> IndicatorSnapshot | None:
            try:
                async with self._semaphore:
                    series = await self.candles.fetch(symbol, timeframe, end_time=end_time)
                return await build_snapshot_async(
                    symbol, timeframe, series, executor=self.executor, now=end_time
                )
            except (DataUnavailable, InsufficientData) as e:
                logger.warning(f"Historical {symbol} {timeframe} unavailable: {e}")
                return None

        results = await asyncio.gather(*(_one(tf) for tf in self.timeframes))
        return dict(zip(self.timeframes, results))

    # =========================================================================
    # Population and sweeps
    # =========================================================================

    async def _populate_key(self, symbol: str, timeframe: str, force: bool) -> str:
        if not await self.needs_refresh(symbol, timeframe, force):
            return SKIPPED
        snapshot = await self.refresh(symbol, timeframe)
        return REFRESHED if snapshot is not None else FAILED

    async def _populate_symbol(self, symbol: str, force: bool, report: PopulateReport) -> None:
        chunk_size = max(self.settings.concurrent_requests, 1)
        for start in range(0, len(self.timeframes), chunk_size):
            chunk = self.timeframes[start:start + chunk_size]
            results = await asyncio.gather(
                *(self._populate_key(symbol, tf, force) for tf in chunk),
                return_exceptions=True,
            )
            for tf, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    logger.error(f"Error populating {symbol} {tf}: {result!r}")
                    report.record(FAILED)
                else:
                    report.record(result)
            await self._sleep(self.settings.chunk_delay)

    async def populate(self, force: bool = False) -> PopulateReport:
        """
        Fill the cache for every symbol x timeframe.

        Symbols are processed in batches of ``batch_size``, all symbols of
        a batch concurrently, each symbol's timeframes in chunks of
        ``concurrent_requests``.

        Args:
            force: Recompute keys even if their entry is still fresh

        Returns:
            PopulateReport with refreshed/skipped/failed counts
        """
        symbols = await self.symbols.get_symbols()
        report = PopulateReport()
        batch_size = max(self.settings.batch_size, 1)
        batches = [symbols[i:i + batch_size] for i in range(0, len(symbols), batch_size)]

        logger.info(
            f"Populating cache: {len(symbols)} symbols x {len(self.timeframes)} timeframes "
            f"in {len(batches)} batches (force={force})"
        )
        for index, batch in enumerate(batches, start=1):
            logger.info(f"Processing batch {index} of {len(batches)}")
            await asyncio.gather(*(self._populate_symbol(s, force, report) for s in batch))
            if index < len(batches):
                await self._sleep(self.settings.batch_delay)

        logger.info(
            f"Cache population complete: {report.refreshed} refreshed, "
            f"{report.skipped} skipped, {report.failed} failed"
        )
        return report

    async def sweep(self) -> int:
        """Schedule background refreshes for every key nearing expiry.

        Returns:
            Number of refreshes started
        """
        symbols = await self.symbols.get_symbols()
        scheduled = 0
        for symbol in symbols:
            for timeframe in self.timeframes:
                if await self.needs_refresh(symbol, timeframe) and self.schedule_refresh(
                    symbol, timeframe
                ):
                    scheduled += 1

        logger.info(f"Sweep scheduled {scheduled} refreshes")
        return scheduled

    async def _sweep_loop(self) -> None:
        while self._running:
            await self._sleep(self.settings.sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.warning(f"Sweep failed: {e}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, populate_on_start: bool = True) -> None:
        """Start initial population (optional) and the periodic sweep."""
        if self._running:
            return

        self._running = True
        if populate_on_start:
            self._populate_task = asyncio.create_task(
                self.populate(force=self.settings.force_update_on_start),
                name="populate",
            )
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="sweep")
        logger.info(f"Cache orchestrator started (sweep every {self.settings.sweep_interval}s)")

    async def stop(self) -> None:
        """Cancel population, the sweep loop and outstanding refreshes."""
        self._running = False
        tasks = [t for t in (self._populate_task, self._sweep_task) if t is not None]
        tasks.extend(self._inflight.values())

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._populate_task = None
        self._sweep_task = None
        self._inflight.clear()
        logger.info("Cache orchestrator stopped")
