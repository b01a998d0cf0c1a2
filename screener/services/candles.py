"""Candle fetching for the cache orchestrator."""

from __future__ import annotations

import logging

from screener.clients.binance_rest import BinanceRestClient
from screener.storage.candle_cache import CandleCache
from screener_core.errors import DataUnavailable
from screener_core.models.candle import CandleSeries

logger = logging.getLogger(__name__)


class CandleService:
    """Fetch candle series, turning upstream failures into DataUnavailable.

    Requests pinned to a time window (start_time or end_time given) are
    served from the side cache when possible. Live requests always go
    upstream, since their result changes with every new bar.
    """

    def __init__(
        self,
        client: BinanceRestClient,
        candle_cache: CandleCache | None = None,
        limit: int = 300,
    ):
        self.client = client
        self.candle_cache = candle_cache
        self.limit = limit

    async def fetch(
        self,
        symbol: str,
        timeframe: str,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> CandleSeries:
        """
        Get candles for one (symbol, timeframe).

        Args:
            symbol: Trading pair
            timeframe: Candle interval
            start_time: Window start in epoch ms
            end_time: Window end in epoch ms

        Returns:
            CandleSeries (malformed rows dropped)

        Raises:
            DataUnavailable: If the exchange returned no usable data
        """
        pinned = start_time is not None or end_time is not None
        key = CandleCache.make_key(symbol, timeframe, start_time, end_time)

        if pinned and self.candle_cache is not None:
            cached = self.candle_cache.get(key)
            if cached is not None:
                return cached

        series = await self.client.get_candles(
            symbol, timeframe, start_time=start_time, end_time=end_time, limit=self.limit
        )
        if series is None:
            raise DataUnavailable(symbol, timeframe)

        if pinned and self.candle_cache is not None:
            self.candle_cache.put(key, series)
        return series
