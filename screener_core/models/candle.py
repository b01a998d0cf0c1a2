"""Candle (OHLCV bar) data models.

Candles are parsed from raw exchange rows of the form
``[open_time, open, high, low, close, volume, close_time, ...]``.
Rows that cannot be parsed are dropped before any indicator sees them.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import numpy as np

logger = logging.getLogger(__name__)

# open_time, open, high, low, close, volume
MIN_ROW_FIELDS = 6


def _to_float(value: Any) -> float | None:
    """Parse a finite float, or None if the value is not numeric."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _to_int(value: Any) -> int | None:
    """Parse an integer timestamp, or None if the value is not numeric."""
    parsed = _to_float(value)
    if parsed is None:
        return None
    return int(parsed)


@dataclass(slots=True, frozen=True)
class Candle:
    """A single OHLCV bar.

    Uses float for all prices and volume and epoch milliseconds for times.
    """

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int | None = None

    @classmethod
    def from_row(cls, row: Any) -> Candle | None:
        """Build a candle from a raw exchange row.

        Args:
            row: Sequence of at least 6 fields

        Returns:
            Candle, or None if the row is malformed
        """
        if not isinstance(row, (list, tuple)) or len(row) < MIN_ROW_FIELDS:
            return None

        open_time = _to_int(row[0])
        prices = [_to_float(v) for v in row[1:6]]
        if open_time is None or any(p is None for p in prices):
            return None

        close_time = _to_int(row[6]) if len(row) > 6 else None
        o, h, l, c, v = prices
        return cls(
            open_time=open_time,
            open=o,
            high=h,
            low=l,
            close=c,
            volume=v,
            close_time=close_time,
        )


class CandleSeries:
    """Immutable, chronologically ordered sequence of candles.

    Column views (``closes``, ``highs``...) are float64 numpy arrays built
    once at construction and marked read-only, so any number of indicator
    computations can share one series without copying or locking.
    """

    __slots__ = ("_candles", "_highs", "_lows", "_closes", "_volumes")

    def __init__(self, candles: Iterable[Candle] = ()):
        self._candles: tuple[Candle, ...] = tuple(candles)
        self._highs = self._column("high")
        self._lows = self._column("low")
        self._closes = self._column("close")
        self._volumes = self._column("volume")

    def _column(self, name: str) -> np.ndarray:
        arr = np.fromiter(
            (getattr(c, name) for c in self._candles),
            dtype=np.float64,
            count=len(self._candles),
        )
        arr.setflags(write=False)
        return arr

    @classmethod
    def from_rows(cls, rows: Iterable[Any] | None) -> CandleSeries:
        """Parse raw exchange rows, dropping malformed ones.

        Args:
            rows: Raw kline rows (None is treated as empty)

        Returns:
            CandleSeries containing only the valid rows, in input order
        """
        if not rows:
            return cls()

        candles = []
        dropped = 0
        for row in rows:
            candle = Candle.from_row(row)
            if candle is None:
                dropped += 1
                continue
            candles.append(candle)

        if dropped:
            logger.debug(f"Dropped {dropped} malformed candle rows")
        return cls(candles)

    @property
    def highs(self) -> np.ndarray:
        return self._highs

    @property
    def lows(self) -> np.ndarray:
        return self._lows

    @property
    def closes(self) -> np.ndarray:
        return self._closes

    @property
    def volumes(self) -> np.ndarray:
        return self._volumes

    @property
    def last(self) -> Candle | None:
        """Most recent candle, or None for an empty series."""
        return self._candles[-1] if self._candles else None

    def __len__(self) -> int:
        return len(self._candles)

    def __repr__(self) -> str:
        return f"CandleSeries(len={len(self._candles)})"


def series_from_closes(
    closes: Sequence[float],
    volume: float = 1.0,
    spread: float = 0.0,
) -> CandleSeries:
    """Build a series from close prices alone.

    Open equals the previous close, high/low sit ``spread`` around the
    close. Handy for feeding close-only histories through the engine.
    """
    candles = []
    prev = closes[0] if len(closes) else 0.0
    for i, close in enumerate(closes):
        candles.append(
            Candle(
                open_time=i * 60_000,
                open=float(prev),
                high=float(close) + spread,
                low=float(close) - spread,
                close=float(close),
                volume=float(volume),
                close_time=(i + 1) * 60_000 - 1,
            )
        )
        prev = close
    return CandleSeries(candles)
