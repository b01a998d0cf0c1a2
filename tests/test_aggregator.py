"""Tests for snapshot aggregation and composite tallies."""

import numpy as np
import pytest

from screener_core.aggregator import (
    build_snapshot,
    build_snapshot_async,
    extended_moving_average_tally,
    extended_oscillator_tally,
    indicator_jobs,
    moving_average_tally,
    oscillator_tally,
)
from screener_core.errors import InsufficientData
from screener_core.models import (
    BollingerBands,
    FibonacciLevels,
    MacdResult,
    series_from_closes,
)


def trending_series(n: int = 300):
    rng = np.random.default_rng(3)
    closes = 100 + np.arange(n) * 0.2 + rng.normal(0, 0.5, n)
    return series_from_closes(list(closes), volume=50.0, spread=0.4)


class TestBuildSnapshot:
    """Tests for build_snapshot."""

    def test_full_history_defines_every_field(self):
        series = trending_series()
        snapshot = build_snapshot("BTCUSDT", "1h", series, now=1_000)

        assert snapshot.key == "BTCUSDT:1h"
        assert snapshot.timestamp == 1_000
        assert snapshot.price == series.last.close
        for field in (
            "rsi", "macd", "adx", "vwap", "bollinger", "obv", "fibonacci",
            "cmf", "ichimoku", "atr", "stochastic",
        ):
            assert getattr(snapshot, field) is not None, field
        assert all(v is not None for v in snapshot.moving_average_values())
        assert all(v is not None for v in snapshot.crossovers())

    def test_short_history_degrades_fields_only(self):
        """Ten bars: long-window indicators are None, the rest are computed."""
        series = series_from_closes([100.0 + i for i in range(10)], spread=1.0)
        snapshot = build_snapshot("ETHUSDT", "5m", series)

        assert snapshot.price == 109.0
        assert snapshot.rsi is None
        assert snapshot.macd is None
        assert snapshot.ichimoku is None
        assert snapshot.sma20 is None
        assert snapshot.ema10 is None
        assert snapshot.sma20_above_sma50 is None
        assert snapshot.sma10 is not None
        assert snapshot.vwap is not None
        assert snapshot.obv is not None

    @pytest.mark.parametrize("bars", [0, 1])
    def test_fewer_than_two_bars_fails(self, bars):
        series = series_from_closes([100.0] * bars)
        with pytest.raises(InsufficientData) as exc_info:
            build_snapshot("BTCUSDT", "1m", series)
        assert exc_info.value.bars == bars

    def test_tallies_stored_on_snapshot(self):
        snapshot = build_snapshot("BTCUSDT", "1h", trending_series())
        assert snapshot.moving_averages == moving_average_tally(snapshot)
        assert snapshot.oscillators == oscillator_tally(snapshot)

    def test_crossovers_follow_averages(self):
        snapshot = build_snapshot("BTCUSDT", "1h", trending_series())
        assert snapshot.ema10_above_ema20 == (snapshot.ema10 > snapshot.ema20)
        assert snapshot.sma50_above_sma200 == (snapshot.sma50 > snapshot.sma200)

    def test_short_ema_crossover_is_ten_over_twenty(self):
        """A late pullback drops EMA10 under EMA20 while EMA20 stays above EMA50."""
        closes = [float(c) for c in range(100, 350)] + [349.0 - 3 * k for k in range(1, 9)]
        snapshot = build_snapshot("BTCUSDT", "1h", series_from_closes(closes))

        assert snapshot.ema10 < snapshot.ema20
        assert snapshot.ema20 > snapshot.ema50
        assert snapshot.ema10_above_ema20 is False
        assert snapshot.crossovers()[0] is False

    def test_one_job_per_indicator(self):
        jobs = indicator_jobs(trending_series(50))
        assert len(jobs) == 21
        assert {"sma10", "sma200", "ema10", "ema200", "rsi", "stochastic"} <= set(jobs)


class TestBuildSnapshotAsync:
    """Tests for the concurrent aggregation path."""

    @pytest.mark.asyncio
    async def test_matches_serial_result(self):
        series = trending_series()
        serial = build_snapshot("BTCUSDT", "4h", series, now=42)
        concurrent = await build_snapshot_async("BTCUSDT", "4h", series, now=42)
        assert concurrent == serial

    @pytest.mark.asyncio
    async def test_insufficient_data(self):
        with pytest.raises(InsufficientData):
            await build_snapshot_async("BTCUSDT", "4h", series_from_closes([1.0]))


class TestBasicTallies:
    """Tests for the tallies stored in snapshots."""

    @pytest.mark.parametrize(
        "rsi,histogram,expected",
        [
            (30.0, 0.5, 2),
            (50.0, 0.5, 1),
            (70.0, -0.5, -2),
            (50.0, 0.0, 0),
            (None, -1.0, -1),
        ],
    )
    def test_oscillator_tally(self, snapshot_factory, rsi, histogram, expected):
        snapshot = snapshot_factory(
            rsi=rsi, macd=MacdResult(macd=0.0, signal=0.0, histogram=histogram)
        )
        assert oscillator_tally(snapshot) == expected

    def test_oscillator_tally_without_macd(self, snapshot_factory):
        assert oscillator_tally(snapshot_factory(rsi=20.0, macd=None)) == 1

    def test_moving_average_tally_skips_undefined(self, snapshot_factory):
        """Six MAs below price, one equal (-1), three undefined."""
        snapshot = snapshot_factory(
            sma10=90.0, sma20=90.0, sma50=100.0, sma100=None, sma200=None,
            ema10=95.0, ema20=95.0, ema50=95.0, ema100=95.0, ema200=None,
        )
        assert moving_average_tally(snapshot) == 5

    def test_moving_average_tally_all_above_price(self, snapshot_factory):
        overrides = {f"sma{p}": 120.0 for p in (10, 20, 50, 100, 200)}
        overrides.update({f"ema{p}": 120.0 for p in (10, 20, 50, 100, 200)})
        assert moving_average_tally(snapshot_factory(**overrides)) == -10


class TestExtendedTallies:
    """Tests for the fuller tallies used by the tally policy."""

    def test_extended_oscillators(self, snapshot_factory):
        """RSI, MACD, ADX, VWAP and OBV add 1 each; price below the middle band adds nothing."""
        snapshot = snapshot_factory()
        assert extended_oscillator_tally(snapshot) == 5

    def test_price_at_lower_band_counts(self, snapshot_factory):
        snapshot = snapshot_factory(
            bollinger=BollingerBands(upper=110.0, middle=105.0, lower=100.0)
        )
        assert extended_oscillator_tally(snapshot) == 6

    def test_fibonacci_proximity_counts_once(self, snapshot_factory):
        """Two levels within 0.1% of price still add 2 only."""
        fib = FibonacciLevels(
            high=100.05,
            low=99.95,
            levels={"0": 100.05, "0.5": 100.0, "1": 99.95},
        )
        snapshot = snapshot_factory(fibonacci=fib)
        assert extended_oscillator_tally(snapshot) == 7

    def test_undefined_groups_add_nothing(self, snapshot_factory):
        snapshot = snapshot_factory(
            adx=None, vwap=None, bollinger=None, obv=None, fibonacci=None
        )
        assert extended_oscillator_tally(snapshot) == oscillator_tally(snapshot)

    def test_extended_moving_averages(self, snapshot_factory):
        """Ten MAs below price plus four bullish crossovers."""
        assert extended_moving_average_tally(snapshot_factory()) == 14

    def test_undefined_crossover_counts_against(self, snapshot_factory):
        overrides = {f"sma{p}": None for p in (10, 20, 50, 100, 200)}
        overrides.update({f"ema{p}": None for p in (10, 20, 50, 100, 200)})
        overrides.update(
            ema10_above_ema20=None,
            ema50_above_ema200=False,
            sma20_above_sma50=None,
            sma50_above_sma200=True,
        )
        assert extended_moving_average_tally(snapshot_factory(**overrides)) == -2
