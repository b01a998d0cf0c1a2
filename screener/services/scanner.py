"""Signal scanning across the symbol universe.

Snapshots are read through the orchestrator (cache first), then
classified by a named signal policy. Signals are never cached.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from screener.clients.symbols import SymbolDirectory
from screener.services.orchestrator import CacheOrchestrator
from screener_core.models.signal import Signal
from screener_core.models.timeframe import is_valid_timeframe
from screener_core.signals import SignalPolicy, create_policy

logger = logging.getLogger(__name__)


class SignalScanner:
    """Evaluate a signal policy over cached snapshots."""

    def __init__(
        self,
        orchestrator: CacheOrchestrator,
        symbols: SymbolDirectory,
        batch_size: int = 200,
    ):
        self.orchestrator = orchestrator
        self.symbols = symbols
        self.batch_size = max(batch_size, 1)

    @staticmethod
    def _resolve(policy: str | SignalPolicy) -> SignalPolicy:
        return create_policy(policy) if isinstance(policy, str) else policy

    async def evaluate(
        self,
        symbol: str,
        timeframe: str,
        policy: str | SignalPolicy = "strength",
        now: datetime | None = None,
    ) -> Signal | None:
        """
        Classify one (symbol, timeframe).

        Args:
            symbol: Trading pair
            timeframe: Timeframe
            policy: Policy name or instance
            now: Evaluation time

        Returns:
            Signal, or None if no snapshot exists or the policy emits nothing
        """
        if not is_valid_timeframe(timeframe):
            raise ValueError(f"Unsupported timeframe: {timeframe}")

        snapshot = await self.orchestrator.get(symbol, timeframe)
        if snapshot is None:
            return None
        return self._resolve(policy).evaluate(snapshot, now)

    async def scan(
        self,
        timeframe: str,
        policy: str | SignalPolicy = "tally",
        actionable_only: bool = True,
        now: datetime | None = None,
    ) -> list[Signal]:
        """
        Classify every symbol for one timeframe.

        Args:
            timeframe: Timeframe to scan
            policy: Policy name or instance
            actionable_only: Drop NEUTRAL results
            now: Evaluation time

        Returns:
            Signals in symbol order
        """
        if not is_valid_timeframe(timeframe):
            raise ValueError(f"Unsupported timeframe: {timeframe}")

        resolved = self._resolve(policy)
        symbols = await self.symbols.get_symbols()
        signals: list[Signal] = []

        total_batches = (len(symbols) + self.batch_size - 1) // self.batch_size
        for start in range(0, len(symbols), self.batch_size):
            batch = symbols[start:start + self.batch_size]
            logger.debug(
                f"Scanning batch {start // self.batch_size + 1} of {total_batches} "
                f"({timeframe}, {resolved.name})"
            )
            results = await asyncio.gather(
                *(self.evaluate(s, timeframe, resolved, now) for s in batch),
                return_exceptions=True,
            )
            for symbol, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(f"Error processing {symbol}: {result!r}")
                    continue
                if result is None:
                    continue
                if actionable_only and not result.is_actionable:
                    continue
                signals.append(result)

        logger.info(f"Scan {timeframe}/{resolved.name}: {len(signals)} signals")
        return signals
