"""Tally/threshold signal policy.

Tolerant of partially defined snapshots: only price, RSI, the MACD
histogram and OBV with its SMA are required. Classification uses fixed
thresholds on RSI, MACD and the Bollinger middle band, plus the extended
moving-average tally for the trending case.
"""

from __future__ import annotations

from datetime import datetime

from screener_core.aggregator import (
    extended_moving_average_tally,
    extended_oscillator_tally,
)
from screener_core.models.signal import Signal, TallySignalType, signal_timestamp
from screener_core.models.snapshot import IndicatorSnapshot

BUY_RSI_MAX = 1.0
SELL_RSI_MIN = 99.0
TRENDING_MA_MIN = 12
TRENDING_RSI_MAX = 60.0


class TallyPolicy:
    """Buy / Sell / trending classification over the extended tallies."""

    name = "tally"

    def classify(self, snapshot: IndicatorSnapshot, moving_averages: int) -> TallySignalType | None:
        """Apply the Buy, Sell and trending rules in that order."""
        price = snapshot.price
        rsi = snapshot.rsi
        histogram = snapshot.macd.histogram
        bands = snapshot.bollinger

        if bands is not None:
            if histogram > 0 and price < bands.middle and rsi <= BUY_RSI_MAX:
                return TallySignalType.BUY
            if bands.middle < price < bands.upper and rsi >= SELL_RSI_MIN:
                return TallySignalType.SELL

        if moving_averages > TRENDING_MA_MIN and rsi < TRENDING_RSI_MAX and histogram > 0:
            return TallySignalType.TRENDING

        return None

    def evaluate(
        self,
        snapshot: IndicatorSnapshot,
        now: datetime | None = None,
    ) -> Signal | None:
        if (
            snapshot.rsi is None
            or snapshot.macd is None
            or snapshot.obv is None
            or snapshot.obv.obv_sma is None
        ):
            return None

        moving_averages = extended_moving_average_tally(snapshot)
        oscillators = extended_oscillator_tally(snapshot)

        classification = self.classify(snapshot, moving_averages)
        if classification is None:
            return None

        return Signal(
            policy=self.name,
            symbol=snapshot.symbol,
            timeframe=snapshot.timeframe,
            classification=classification,
            strength=moving_averages + oscillators,
            timestamp=signal_timestamp(now),
            price=snapshot.price,
            indicators=snapshot,
            moving_averages=moving_averages,
            oscillators=oscillators,
        )
