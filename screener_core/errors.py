"""Error taxonomy shared by the core and the I/O layer.

Insufficient history for a single indicator is not an error: the
indicator simply reports ``None``. The exceptions below cover the
failures that abort a whole computation or fetch.
"""

from __future__ import annotations


class ScreenerError(Exception):
    """Base class for all screener errors."""


class DataUnavailable(ScreenerError):
    """Upstream data could not be obtained (retries exhausted, region blocked, bad payload)."""

    def __init__(self, symbol: str, timeframe: str, reason: str = "no data"):
        self.symbol = symbol
        self.timeframe = timeframe
        self.reason = reason
        super().__init__(f"{symbol} {timeframe}: {reason}")


class RateLimited(ScreenerError):
    """Upstream asked us to back off.

    Attributes:
        retry_after: Server-supplied delay in seconds.
    """

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"rate limited, retry after {retry_after}s")


class InsufficientData(ScreenerError):
    """A snapshot cannot be built because the price cannot be derived."""

    def __init__(self, symbol: str, timeframe: str, bars: int):
        self.symbol = symbol
        self.timeframe = timeframe
        self.bars = bars
        super().__init__(
            f"{symbol} {timeframe}: need at least 2 valid bars, got {bars}"
        )


class FatalStartupError(ScreenerError):
    """A required collaborator is unreachable at process start."""
