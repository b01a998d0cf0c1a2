"""Exchange clients."""

from screener.clients.binance_rest import BinanceRestClient, RateLimiter, backoff_delay
from screener.clients.symbols import ExpiringValue, SymbolDirectory, filter_symbols

__all__ = [
    "BinanceRestClient",
    "RateLimiter",
    "backoff_delay",
    "SymbolDirectory",
    "ExpiringValue",
    "filter_symbols",
]
