"""Tradable symbol universe, cached with an explicit expiry."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from screener.clients.binance_rest import BinanceRestClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_SYMBOLS: tuple[str, ...] = ("BTCUSDT", "ETHUSDT", "BNBUSDT")

# Leveraged-token base assets (e.g. BTCUP, ETHBEAR)
LEVERAGED_SUFFIXES: tuple[str, ...] = ("UP", "DOWN", "BULL", "BEAR")


@dataclass(slots=True, frozen=True)
class ExpiringValue(Generic[T]):
    """A value paired with the clock reading at which it expires."""

    value: T
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


def filter_symbols(exchange_info: dict[str, Any], quote_asset: str = "USDT") -> list[str]:
    """
    Select tradable spot symbols quoted in ``quote_asset``.

    Keeps symbols with status TRADING, ending in the quote asset, without
    an underscore, whose base asset is not a leveraged token.

    Args:
        exchange_info: Payload from /exchangeInfo
        quote_asset: Quote asset suffix (e.g., "USDT")

    Returns:
        Symbols in exchange order
    """
    symbols = []
    for info in exchange_info.get("symbols", []):
        symbol = info.get("symbol", "")
        if info.get("status") != "TRADING":
            continue
        if not symbol.endswith(quote_asset) or "_" in symbol:
            continue
        base = symbol[: -len(quote_asset)]
        if not base or base.endswith(LEVERAGED_SUFFIXES):
            continue
        symbols.append(symbol)
    return symbols


class SymbolDirectory:
    """Cached list of screenable symbols.

    The list is refetched once its TTL lapses. If the exchange cannot be
    reached the last known list is returned, or FALLBACK_SYMBOLS when
    nothing has been fetched yet.
    """

    def __init__(
        self,
        client: BinanceRestClient,
        quote_asset: str = "USDT",
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.quote_asset = quote_asset
        self.ttl = ttl
        self._clock = clock
        self._cached: ExpiringValue[list[str]] | None = None

    async def get_symbols(self, force: bool = False) -> list[str]:
        """Return the symbol universe, refreshing it when expired."""
        now = self._clock()
        if not force and self._cached is not None and self._cached.is_valid(now):
            return list(self._cached.value)

        info = await self.client.get_exchange_info()
        if info is None:
            if self._cached is not None:
                logger.warning("Exchange info unavailable, using last known symbol list")
                return list(self._cached.value)
            logger.warning("Exchange info unavailable, using fallback symbols")
            return list(FALLBACK_SYMBOLS)

        symbols = filter_symbols(info, self.quote_asset)
        self._cached = ExpiringValue(symbols, now + self.ttl)
        logger.info(f"Loaded {len(symbols)} {self.quote_asset} symbols")
        return list(symbols)
