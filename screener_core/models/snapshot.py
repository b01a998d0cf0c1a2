"""Indicator result groups and the per-(symbol, timeframe) snapshot.

An indicator that cannot be computed is ``None`` in the snapshot. Grouped
indicators (MACD, ADX, Bollinger...) are either a complete result model or
``None``; there are no half-filled groups of nullable numbers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

FIB_RATIOS: tuple[str, ...] = ("0", "0.236", "0.382", "0.5", "0.618", "0.786", "1")

SMA_PERIODS: tuple[int, ...] = (10, 20, 50, 100, 200)
EMA_PERIODS: tuple[int, ...] = (10, 20, 50, 100, 200)


class MacdResult(BaseModel):
    """MACD line, signal line and histogram, plus the two prior periods."""

    model_config = ConfigDict(frozen=True)

    macd: float
    signal: float
    histogram: float
    previous_macd_1: float | None = None
    previous_signal_1: float | None = None
    previous_histogram_1: float | None = None
    previous_macd_2: float | None = None
    previous_signal_2: float | None = None
    previous_histogram_2: float | None = None


class AdxResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    adx: float
    plus_di: float
    minus_di: float


class BollingerBands(BaseModel):
    model_config = ConfigDict(frozen=True)

    upper: float
    middle: float
    lower: float


class ObvResult(BaseModel):
    """On-balance volume and its SMA (None until enough OBV values exist)."""

    model_config = ConfigDict(frozen=True)

    obv: float
    obv_sma: float | None = None


class FibonacciLevels(BaseModel):
    """Retracement levels keyed by ratio label ("0", "0.236", ... "1")."""

    model_config = ConfigDict(frozen=True)

    high: float
    low: float
    levels: dict[str, float]


class IchimokuCloud(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversion: float
    base: float
    span_a: float
    span_b: float


class StochasticResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    k: float
    d: float


class IndicatorSnapshot(BaseModel):
    """All indicators for one (symbol, timeframe) at one point in time.

    Snapshots are replaced wholesale on refresh, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    timeframe: str
    timestamp: int  # Evaluation time, epoch milliseconds
    price: float

    rsi: float | None = None
    macd: MacdResult | None = None

    sma10: float | None = None
    sma20: float | None = None
    sma50: float | None = None
    sma100: float | None = None
    sma200: float | None = None

    ema10: float | None = None
    ema20: float | None = None
    ema50: float | None = None
    ema100: float | None = None
    ema200: float | None = None

    ema10_above_ema20: bool | None = None
    ema50_above_ema200: bool | None = None
    sma20_above_sma50: bool | None = None
    sma50_above_sma200: bool | None = None

    adx: AdxResult | None = None
    vwap: float | None = None
    bollinger: BollingerBands | None = None
    obv: ObvResult | None = None
    fibonacci: FibonacciLevels | None = None
    cmf: float | None = None
    ichimoku: IchimokuCloud | None = None
    atr: float | None = None
    stochastic: StochasticResult | None = None

    # Composite tallies (always numeric)
    moving_averages: int = 0
    oscillators: int = 0

    @property
    def key(self) -> str:
        """Unique key for this snapshot: 'SYMBOL:TIMEFRAME'."""
        return f"{self.symbol}:{self.timeframe}"

    def smas(self) -> list[float | None]:
        return [self.sma10, self.sma20, self.sma50, self.sma100, self.sma200]

    def emas(self) -> list[float | None]:
        return [self.ema10, self.ema20, self.ema50, self.ema100, self.ema200]

    def moving_average_values(self) -> list[float | None]:
        """The ten moving averages, SMAs first."""
        return self.smas() + self.emas()

    def crossovers(self) -> list[bool | None]:
        return [
            self.ema10_above_ema20,
            self.ema50_above_ema200,
            self.sma20_above_sma50,
            self.sma50_above_sma200,
        ]
