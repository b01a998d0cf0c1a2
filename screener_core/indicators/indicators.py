"""Technical indicators for snapshot generation.

This module has two layers:
1. Series helpers over float64 NumPy arrays, returning full-length arrays
   with NaN where a value is not yet defined.
2. Public indicator functions taking a CandleSeries and returning the
   latest value (or a result group), or None when the series is shorter
   than the indicator's minimum or the value is not finite.

All arithmetic is double precision. Nothing here raises for short or
degenerate input.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from screener_core.models.candle import CandleSeries
from screener_core.models.snapshot import (
    FIB_RATIOS,
    AdxResult,
    BollingerBands,
    FibonacciLevels,
    IchimokuCloud,
    MacdResult,
    ObvResult,
    StochasticResult,
)

# Minimum bar counts (fixed)
RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
MACD_MIN_BARS = 35
ADX_PERIOD = 14
ATR_PERIOD = 14
BOLLINGER_PERIOD = 20
BOLLINGER_MULTIPLIER = 2.0
OBV_SMA_PERIOD = 9
OBV_MIN_BARS = 2
FIB_PERIOD = 20
CMF_PERIOD = 20
ICHIMOKU_CONVERSION = 9
ICHIMOKU_BASE = 26
ICHIMOKU_SPAN_B = 52
STOCH_K_PERIOD = 14
STOCH_D_PERIOD = 3


def _finite_or_none(value: float) -> float | None:
    """Convert to a plain float, mapping NaN/inf to None."""
    value = float(value)
    return value if math.isfinite(value) else None


def _nan_array(n: int) -> np.ndarray:
    return np.full(n, np.nan, dtype=np.float64)


# =============================================================================
# Series helpers
# =============================================================================

def sma_series(values: np.ndarray, period: int) -> np.ndarray:
    """Simple moving average (NaN for the first period-1 values)."""
    n = len(values)
    result = _nan_array(n)
    if period <= 0 or n < period:
        return result
    result[period - 1:] = sliding_window_view(values, period).mean(axis=1)
    return result


def ema_series(values: np.ndarray, period: int) -> np.ndarray:
    """Exponential moving average seeded with the SMA of the first period values."""
    n = len(values)
    result = _nan_array(n)
    if period <= 0 or n < period:
        return result

    multiplier = 2.0 / (period + 1)
    result[period - 1] = np.mean(values[:period])
    for i in range(period, n):
        result[i] = result[i - 1] + multiplier * (values[i] - result[i - 1])

    return result


def highest(values: np.ndarray, period: int) -> np.ndarray:
    """Highest value over the lookback period."""
    n = len(values)
    result = _nan_array(n)
    if period <= 0 or n < period:
        return result
    result[period - 1:] = sliding_window_view(values, period).max(axis=1)
    return result


def lowest(values: np.ndarray, period: int) -> np.ndarray:
    """Lowest value over the lookback period."""
    n = len(values)
    result = _nan_array(n)
    if period <= 0 or n < period:
        return result
    result[period - 1:] = sliding_window_view(values, period).min(axis=1)
    return result


def true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    """True range for bars 1..n-1 (each needs the previous close).

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close))

    Returns:
        Array of length n-1 (empty for fewer than 2 bars)
    """
    if len(closes) < 2:
        return np.empty(0, dtype=np.float64)

    prev_close = closes[:-1]
    return np.maximum.reduce([
        highs[1:] - lows[1:],
        np.abs(highs[1:] - prev_close),
        np.abs(lows[1:] - prev_close),
    ])


def wilder_smooth(values: np.ndarray, period: int) -> np.ndarray:
    """Wilder's running-sum smoothing.

    smoothed[period-1] = sum(values[:period])
    smoothed[i] = smoothed[i-1] - smoothed[i-1] / period + values[i]
    """
    n = len(values)
    result = _nan_array(n)
    if period <= 0 or n < period:
        return result

    result[period - 1] = np.sum(values[:period])
    for i in range(period, n):
        result[i] = result[i - 1] - result[i - 1] / period + values[i]

    return result


def directional_movement(
    highs: np.ndarray, lows: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """+DM and -DM for bars 1..n-1."""
    up_move = highs[1:] - highs[:-1]
    down_move = lows[:-1] - lows[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    return plus_dm, minus_dm


# =============================================================================
# Public API
# =============================================================================

def sma(series: CandleSeries, period: int) -> float | None:
    """
    Simple moving average of closes.

    Args:
        series: Candle series
        period: SMA period (minimum bars = period)

    Returns:
        Latest SMA, or None
    """
    if period <= 0 or len(series) < period:
        return None
    return _finite_or_none(np.mean(series.closes[-period:]))


def ema(series: CandleSeries, period: int) -> float | None:
    """
    Exponential moving average of closes.

    Args:
        series: Candle series
        period: EMA period (minimum bars = period + 1)

    Returns:
        Latest EMA, or None
    """
    if period <= 0 or len(series) < period + 1:
        return None
    return _finite_or_none(ema_series(series.closes, period)[-1])


def rsi(series: CandleSeries, period: int = RSI_PERIOD) -> float | None:
    """
    Relative Strength Index with Wilder averaging.

    The first average gain/loss is the simple mean of the first ``period``
    changes; later ones use avg = (avg * (period - 1) + x) / period.

    Args:
        series: Candle series
        period: RSI period (minimum bars = period + 1)

    Returns:
        RSI in [0, 100], or None
    """
    closes = series.closes
    if period <= 0 or len(closes) < period + 1:
        return None

    deltas = np.diff(closes)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    if avg_gain == 0:
        return 0.0

    rs = avg_gain / avg_loss
    value = 100.0 - 100.0 / (1.0 + rs)
    return _finite_or_none(min(max(value, 0.0), 100.0))


def macd(
    series: CandleSeries,
    fast_period: int = MACD_FAST,
    slow_period: int = MACD_SLOW,
    signal_period: int = MACD_SIGNAL,
) -> MacdResult | None:
    """
    Moving Average Convergence Divergence.

    MACD = EMA(fast) - EMA(slow); signal = EMA(signal_period) of the MACD
    line; histogram = MACD - signal. Also exposes the two prior periods'
    values (each None when not yet defined).

    Args:
        series: Candle series (minimum 35 bars)

    Returns:
        MacdResult, or None
    """
    closes = series.closes
    if len(closes) < MACD_MIN_BARS:
        return None

    line = ema_series(closes, fast_period) - ema_series(closes, slow_period)
    line = line[slow_period - 1:]
    signal = ema_series(line, signal_period)
    histogram = line - signal

    current = (
        _finite_or_none(line[-1]),
        _finite_or_none(signal[-1]),
        _finite_or_none(histogram[-1]),
    )
    if any(v is None for v in current):
        return None

    def _previous(arr: np.ndarray, offset: int) -> float | None:
        if len(arr) <= offset:
            return None
        return _finite_or_none(arr[-1 - offset])

    return MacdResult(
        macd=current[0],
        signal=current[1],
        histogram=current[2],
        previous_macd_1=_previous(line, 1),
        previous_signal_1=_previous(signal, 1),
        previous_histogram_1=_previous(histogram, 1),
        previous_macd_2=_previous(line, 2),
        previous_signal_2=_previous(signal, 2),
        previous_histogram_2=_previous(histogram, 2),
    )


def adx(series: CandleSeries, period: int = ADX_PERIOD) -> AdxResult | None:
    """
    Average Directional Index with +DI/-DI.

    TR, +DM and -DM are Wilder-smoothed (sum-seeded). The reported ADX is
    the directional index of the latest bar:
    DX = |+DI - -DI| / (+DI + -DI) * 100.

    Args:
        series: Candle series
        period: Smoothing period (minimum bars = period + 1)

    Returns:
        AdxResult, or None if smoothed TR is zero
    """
    if period <= 0 or len(series) < period + 1:
        return None

    highs, lows, closes = series.highs, series.lows, series.closes
    tr = true_range(highs, lows, closes)
    plus_dm, minus_dm = directional_movement(highs, lows)

    smoothed_tr = wilder_smooth(tr, period)[-1]
    smoothed_plus = wilder_smooth(plus_dm, period)[-1]
    smoothed_minus = wilder_smooth(minus_dm, period)[-1]

    if not math.isfinite(smoothed_tr) or smoothed_tr == 0:
        return None

    plus_di = smoothed_plus / smoothed_tr * 100
    minus_di = smoothed_minus / smoothed_tr * 100
    di_sum = plus_di + minus_di
    dx = abs(plus_di - minus_di) / di_sum * 100 if di_sum > 0 else 0.0

    values = (_finite_or_none(dx), _finite_or_none(plus_di), _finite_or_none(minus_di))
    if any(v is None for v in values):
        return None
    return AdxResult(adx=values[0], plus_di=values[1], minus_di=values[2])


def atr(series: CandleSeries, period: int = ATR_PERIOD) -> float | None:
    """
    Average True Range.

    Seeded with the simple mean of the first ``period`` true ranges, then
    atr = (atr * (period - 1) + tr) / period.

    Args:
        series: Candle series
        period: ATR period (minimum bars = period + 1)

    Returns:
        Latest ATR, or None
    """
    if period <= 0 or len(series) < period + 1:
        return None

    tr = true_range(series.highs, series.lows, series.closes)
    value = float(np.mean(tr[:period]))
    for i in range(period, len(tr)):
        value = (value * (period - 1) + tr[i]) / period

    return _finite_or_none(value)


def vwap(series: CandleSeries) -> float | None:
    """
    Volume Weighted Average Price, cumulative over the whole series.

    VWAP = sum(typical_price * volume) / sum(volume),
    typical_price = (high + low + close) / 3.

    Returns:
        VWAP, or None for an empty series or zero total volume
    """
    if len(series) == 0:
        return None

    volumes = series.volumes
    cum_volume = float(np.sum(volumes))
    if cum_volume == 0:
        return None

    typical = (series.highs + series.lows + series.closes) / 3
    return _finite_or_none(np.sum(typical * volumes) / cum_volume)


def bollinger_bands(
    series: CandleSeries,
    period: int = BOLLINGER_PERIOD,
    multiplier: float = BOLLINGER_MULTIPLIER,
) -> BollingerBands | None:
    """
    Bollinger Bands around SMA(period) using the population std-dev.

    Args:
        series: Candle series (minimum bars = period)
        period: Window length
        multiplier: Band width in standard deviations

    Returns:
        BollingerBands, or None
    """
    if period <= 0 or len(series) < period:
        return None

    window = series.closes[-period:]
    middle = float(np.mean(window))
    std = math.sqrt(float(np.mean((window - middle) ** 2)))

    values = (
        _finite_or_none(middle + std * multiplier),
        _finite_or_none(middle),
        _finite_or_none(middle - std * multiplier),
    )
    if any(v is None for v in values):
        return None
    return BollingerBands(upper=values[0], middle=values[1], lower=values[2])


def obv(series: CandleSeries, sma_period: int = OBV_SMA_PERIOD) -> ObvResult | None:
    """
    On-Balance Volume and its SMA.

    Running sum starting at the second bar: add volume when the close
    rose, subtract when it fell, unchanged when equal.

    Args:
        series: Candle series (minimum 2 bars)
        sma_period: Smoothing period for obv_sma

    Returns:
        ObvResult (obv_sma None while fewer than sma_period OBV values), or None
    """
    if len(series) < OBV_MIN_BARS:
        return None

    direction = np.sign(np.diff(series.closes))
    running = np.cumsum(direction * series.volumes[1:])

    obv_value = _finite_or_none(running[-1])
    if obv_value is None:
        return None

    obv_sma = None
    if sma_period > 0 and len(running) >= sma_period:
        obv_sma = _finite_or_none(np.mean(running[-sma_period:]))

    return ObvResult(obv=obv_value, obv_sma=obv_sma)


def fibonacci_retracement(
    series: CandleSeries, period: int = FIB_PERIOD
) -> FibonacciLevels | None:
    """
    Fibonacci retracement levels over the last ``period`` bars.

    level(r) = high - (high - low) * r for r in FIB_RATIOS.

    Args:
        series: Candle series (minimum bars = period)
        period: Lookback window

    Returns:
        FibonacciLevels, or None
    """
    if period <= 0 or len(series) < period:
        return None

    high = float(np.max(series.highs[-period:]))
    low = float(np.min(series.lows[-period:]))
    diff = high - low

    levels = {}
    for ratio in FIB_RATIOS:
        if ratio == "0":
            levels[ratio] = high
        elif ratio == "1":
            levels[ratio] = low
        else:
            levels[ratio] = high - diff * float(ratio)

    return FibonacciLevels(high=high, low=low, levels=levels)


def cmf(series: CandleSeries, period: int = CMF_PERIOD) -> float | None:
    """
    Chaikin Money Flow over the last ``period`` bars.

    Money flow multiplier = ((C - L) - (H - C)) / (H - L). Bars with
    H == L have no defined multiplier and are left out of both sums.

    Args:
        series: Candle series (minimum bars = period)
        period: Lookback window

    Returns:
        CMF, or None if no bar in the window has a range or volume
    """
    if period <= 0 or len(series) < period:
        return None

    highs = series.highs[-period:]
    lows = series.lows[-period:]
    closes = series.closes[-period:]
    volumes = series.volumes[-period:]

    ranges = highs - lows
    mask = ranges != 0
    if not mask.any():
        return None

    mfm = ((closes[mask] - lows[mask]) - (highs[mask] - closes[mask])) / ranges[mask]
    volume_sum = float(np.sum(volumes[mask]))
    if volume_sum == 0:
        return None

    return _finite_or_none(np.sum(mfm * volumes[mask]) / volume_sum)


def ichimoku_cloud(series: CandleSeries) -> IchimokuCloud | None:
    """
    Ichimoku Cloud lines for the latest bar (9/26/52 windows).

    Returns:
        IchimokuCloud, or None for fewer than 52 bars
    """
    if len(series) < ICHIMOKU_SPAN_B:
        return None

    highs, lows = series.highs, series.lows

    def _midpoint(window: int) -> float:
        return (float(np.max(highs[-window:])) + float(np.min(lows[-window:]))) / 2

    conversion = _midpoint(ICHIMOKU_CONVERSION)
    base = _midpoint(ICHIMOKU_BASE)
    span_b = _midpoint(ICHIMOKU_SPAN_B)
    span_a = (conversion + base) / 2

    return IchimokuCloud(conversion=conversion, base=base, span_a=span_a, span_b=span_b)


def stochastic(
    series: CandleSeries,
    k_period: int = STOCH_K_PERIOD,
    d_period: int = STOCH_D_PERIOD,
) -> StochasticResult | None:
    """
    Stochastic oscillator.

    %K = (close - lowest_low) / (highest_high - lowest_low) * 100, or 50
    when the window has no range; %D = SMA(d_period) of %K.

    Args:
        series: Candle series (minimum bars = k_period + d_period)

    Returns:
        StochasticResult with both values in [0, 100], or None
    """
    if k_period <= 0 or d_period <= 0 or len(series) < k_period + d_period:
        return None

    hh = highest(series.highs, k_period)[k_period - 1:]
    ll = lowest(series.lows, k_period)[k_period - 1:]
    closes = series.closes[k_period - 1:]

    ranges = hh - ll
    raw = np.divide(
        closes - ll,
        ranges,
        out=np.full_like(ranges, 0.5),
        where=ranges != 0,
    )
    k_values = np.clip(raw * 100, 0.0, 100.0)

    k = _finite_or_none(k_values[-1])
    d = _finite_or_none(np.mean(k_values[-d_period:]))
    if k is None or d is None:
        return None
    return StochasticResult(k=k, d=d)


def crossover(fast: float | None, slow: float | None) -> bool | None:
    """True if fast is above slow, None if either is undefined."""
    if fast is None or slow is None:
        return None
    return fast > slow
