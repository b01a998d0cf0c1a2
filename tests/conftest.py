"""Shared test fixtures."""

import asyncio

import numpy as np
import pytest

from screener_core.errors import DataUnavailable
from screener_core.models import (
    AdxResult,
    BollingerBands,
    FibonacciLevels,
    IchimokuCloud,
    IndicatorSnapshot,
    MacdResult,
    ObvResult,
    StochasticResult,
    series_from_closes,
)


def make_snapshot(**overrides) -> IndicatorSnapshot:
    """A fully populated, bullish-leaning snapshot at price 100."""
    fields = dict(
        symbol="BTCUSDT",
        timeframe="1h",
        timestamp=1_700_000_000_000,
        price=100.0,
        rsi=25.0,
        macd=MacdResult(macd=1.0, signal=0.5, histogram=0.5),
        sma10=90.0,
        sma20=90.0,
        sma50=90.0,
        sma100=90.0,
        sma200=90.0,
        ema10=95.0,
        ema20=95.0,
        ema50=95.0,
        ema100=95.0,
        ema200=95.0,
        ema10_above_ema20=True,
        ema50_above_ema200=True,
        sma20_above_sma50=True,
        sma50_above_sma200=True,
        adx=AdxResult(adx=30.0, plus_di=25.0, minus_di=10.0),
        vwap=98.0,
        bollinger=BollingerBands(upper=110.0, middle=102.0, lower=99.0),
        obv=ObvResult(obv=1000.0, obv_sma=900.0),
        fibonacci=FibonacciLevels(
            high=130.0,
            low=80.0,
            levels={
                "0": 130.0,
                "0.236": 118.2,
                "0.382": 110.9,
                "0.5": 105.0,
                "0.618": 99.1,
                "0.786": 90.7,
                "1": 80.0,
            },
        ),
        cmf=0.2,
        ichimoku=IchimokuCloud(conversion=97.0, base=96.0, span_a=95.0, span_b=90.0),
        atr=1.5,
        stochastic=StochasticResult(k=15.0, d=18.0),
    )
    fields.update(overrides)
    return IndicatorSnapshot(**fields)


@pytest.fixture
def snapshot_factory():
    """Factory for synthetic snapshots (keyword overrides replace fields)."""
    return make_snapshot


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_sleep():
    """A sleep that records requested delays and only yields to the loop."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)
        await asyncio.sleep(0)

    _sleep.delays = delays
    return _sleep


class FakeCandles:
    """Stand-in for CandleService returning one fixed series.

    Symbols in ``fail`` raise DataUnavailable. When ``gate`` is set, every
    fetch waits on it first.
    """

    def __init__(self, series):
        self.series = series
        self.calls: list[tuple[str, str, int | None]] = []
        self.fail: set[str] = set()
        self.gate: asyncio.Event | None = None

    async def fetch(self, symbol, timeframe, start_time=None, end_time=None):
        self.calls.append((symbol, timeframe, end_time))
        if self.gate is not None:
            await self.gate.wait()
        if symbol in self.fail:
            raise DataUnavailable(symbol, timeframe)
        return self.series


class FakeSymbols:
    """Stand-in for SymbolDirectory with a fixed universe."""

    def __init__(self, symbols):
        self.symbols = list(symbols)

    async def get_symbols(self, force=False):
        return list(self.symbols)


@pytest.fixture(scope="session")
def long_series():
    """300 bars of a noisy uptrend, enough for every indicator."""
    rng = np.random.default_rng(7)
    closes = 100 + np.arange(300) * 0.2 + rng.normal(0, 0.5, 300)
    return series_from_closes(list(closes), volume=50.0, spread=0.4)


@pytest.fixture
def candles(long_series):
    return FakeCandles(long_series)


@pytest.fixture
def symbols():
    return FakeSymbols(["BTCUSDT", "ETHUSDT", "BNBUSDT"])
