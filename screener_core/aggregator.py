"""Snapshot aggregation: run the full indicator set over one candle series.

Every indicator job is a pure function of the same immutable CandleSeries,
so jobs can run serially or on an executor without any synchronization.
An indicator without enough history degrades to a None field; only a
series too short to yield a price (fewer than 2 bars) fails the snapshot.
"""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import Executor
from typing import Any, Callable

from screener_core.errors import InsufficientData
from screener_core.indicators import indicators as ind
from screener_core.models.candle import CandleSeries
from screener_core.models.snapshot import EMA_PERIODS, SMA_PERIODS, IndicatorSnapshot

# Bars required to derive a snapshot price
MIN_PRICE_BARS = 2

# Extended oscillator tally parameters
ADX_TREND_THRESHOLD = 25.0
FIB_PROXIMITY = 0.001


def indicator_jobs(series: CandleSeries) -> dict[str, Callable[[], Any]]:
    """Build one zero-argument job per indicator field.

    Args:
        series: Candle series shared by all jobs

    Returns:
        Mapping of snapshot field name -> callable returning the field value
    """
    jobs: dict[str, Callable[[], Any]] = {
        "rsi": lambda: ind.rsi(series),
        "macd": lambda: ind.macd(series),
        "adx": lambda: ind.adx(series),
        "vwap": lambda: ind.vwap(series),
        "bollinger": lambda: ind.bollinger_bands(series),
        "obv": lambda: ind.obv(series),
        "fibonacci": lambda: ind.fibonacci_retracement(series),
        "cmf": lambda: ind.cmf(series),
        "ichimoku": lambda: ind.ichimoku_cloud(series),
        "atr": lambda: ind.atr(series),
        "stochastic": lambda: ind.stochastic(series),
    }
    for period in SMA_PERIODS:
        jobs[f"sma{period}"] = lambda p=period: ind.sma(series, p)
    for period in EMA_PERIODS:
        jobs[f"ema{period}"] = lambda p=period: ind.ema(series, p)
    return jobs


def _require_price(symbol: str, timeframe: str, series: CandleSeries) -> float:
    if len(series) < MIN_PRICE_BARS:
        raise InsufficientData(symbol, timeframe, len(series))
    return series.last.close


def _now_ms() -> int:
    return int(time.time() * 1000)


def _assemble(
    symbol: str,
    timeframe: str,
    price: float,
    values: dict[str, Any],
    now: int | None,
) -> IndicatorSnapshot:
    """Merge indicator values into a snapshot and attach the basic tallies."""
    fields = dict(values)
    fields["ema10_above_ema20"] = ind.crossover(values["ema10"], values["ema20"])
    fields["ema50_above_ema200"] = ind.crossover(values["ema50"], values["ema200"])
    fields["sma20_above_sma50"] = ind.crossover(values["sma20"], values["sma50"])
    fields["sma50_above_sma200"] = ind.crossover(values["sma50"], values["sma200"])

    snapshot = IndicatorSnapshot(
        symbol=symbol,
        timeframe=timeframe,
        timestamp=now if now is not None else _now_ms(),
        price=price,
        **fields,
    )
    return snapshot.model_copy(
        update={
            "moving_averages": moving_average_tally(snapshot),
            "oscillators": oscillator_tally(snapshot),
        }
    )


def build_snapshot(
    symbol: str,
    timeframe: str,
    series: CandleSeries,
    now: int | None = None,
) -> IndicatorSnapshot:
    """
    Compute a snapshot by running every indicator job in turn.

    Args:
        symbol: Trading pair
        timeframe: Timeframe of the series
        series: Candle series (malformed rows already dropped)
        now: Evaluation time in epoch ms (defaults to wall clock)

    Returns:
        IndicatorSnapshot

    Raises:
        InsufficientData: If fewer than 2 bars are available
    """
    price = _require_price(symbol, timeframe, series)
    values = {name: job() for name, job in indicator_jobs(series).items()}
    return _assemble(symbol, timeframe, price, values, now)


async def build_snapshot_async(
    symbol: str,
    timeframe: str,
    series: CandleSeries,
    executor: Executor | None = None,
    now: int | None = None,
) -> IndicatorSnapshot:
    """
    Compute a snapshot with all indicator jobs running concurrently.

    Args:
        symbol: Trading pair
        timeframe: Timeframe of the series
        series: Candle series
        executor: Executor for the jobs (None = loop default)
        now: Evaluation time in epoch ms (defaults to wall clock)

    Returns:
        IndicatorSnapshot

    Raises:
        InsufficientData: If fewer than 2 bars are available
    """
    price = _require_price(symbol, timeframe, series)
    loop = asyncio.get_running_loop()
    jobs = indicator_jobs(series)
    results = await asyncio.gather(
        *(loop.run_in_executor(executor, job) for job in jobs.values())
    )
    return _assemble(symbol, timeframe, price, dict(zip(jobs.keys(), results)), now)


# =============================================================================
# Composite tallies
# =============================================================================

def oscillator_tally(snapshot: IndicatorSnapshot) -> int:
    """RSI extremes and MACD histogram sign, each worth +/-1."""
    score = 0

    if snapshot.rsi is not None:
        if snapshot.rsi <= 30:
            score += 1
        elif snapshot.rsi >= 70:
            score -= 1

    if snapshot.macd is not None:
        if snapshot.macd.histogram > 0:
            score += 1
        elif snapshot.macd.histogram < 0:
            score -= 1

    return score


def moving_average_tally(snapshot: IndicatorSnapshot) -> int:
    """+1 for each defined MA below price, -1 for each at or above it."""
    score = 0
    for value in snapshot.moving_average_values():
        if value is None:
            continue
        score += 1 if snapshot.price > value else -1
    return score


def extended_oscillator_tally(snapshot: IndicatorSnapshot) -> int:
    """
    Basic oscillator tally plus trend, volume and level confirmations.

    Adds +1 for ADX > 25 with +DI above -DI, +1 for price above VWAP,
    +1 for price at/below the lower band or else above the middle band,
    +1 for OBV above its SMA and +2 (once) when price is within 0.1% of
    any Fibonacci level.
    """
    score = oscillator_tally(snapshot)
    price = snapshot.price

    adx = snapshot.adx
    if adx is not None and adx.adx > ADX_TREND_THRESHOLD and adx.plus_di > adx.minus_di:
        score += 1

    if snapshot.vwap is not None and price > snapshot.vwap:
        score += 1

    bands = snapshot.bollinger
    if bands is not None:
        if price <= bands.lower:
            score += 1
        elif price > bands.middle:
            score += 1

    obv = snapshot.obv
    if obv is not None and obv.obv_sma is not None and obv.obv > obv.obv_sma:
        score += 1

    if snapshot.fibonacci is not None:
        for level in snapshot.fibonacci.levels.values():
            if abs(price - level) < price * FIB_PROXIMITY:
                score += 2
                break

    return score


def extended_moving_average_tally(snapshot: IndicatorSnapshot) -> int:
    """Basic MA tally plus +/-1 per crossover (undefined counts as -1)."""
    score = moving_average_tally(snapshot)
    for above in snapshot.crossovers():
        score += 1 if above is True else -1
    return score
