"""Strength-sum signal policy.

Every indicator field must be defined; a single missing value yields
NEUTRAL with strength 0. Otherwise each factor adds a fixed signed weight
and the total is thresholded at +/-5.
"""

from __future__ import annotations

from datetime import datetime

from screener_core.models.signal import Signal, SignalType, signal_timestamp
from screener_core.models.snapshot import IndicatorSnapshot

BUY_THRESHOLD = 5
SELL_THRESHOLD = -5

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
ADX_TREND_THRESHOLD = 25.0
ATR_MULTIPLIER = 2.0
STOCH_OVERSOLD = 20.0
STOCH_OVERBOUGHT = 80.0


def required_values(snapshot: IndicatorSnapshot) -> list[float | None]:
    """All values the strength sum reads, flattened (None where undefined)."""
    s = snapshot
    values: list[float | None] = [s.price, s.rsi]
    values += [s.macd.macd, s.macd.signal, s.macd.histogram] if s.macd else [None]
    values += s.smas() + s.emas()
    values += [s.adx.adx, s.adx.plus_di, s.adx.minus_di] if s.adx else [None]
    values.append(s.vwap)
    values += [s.bollinger.upper, s.bollinger.middle, s.bollinger.lower] if s.bollinger else [None]
    values += [s.obv.obv, s.obv.obv_sma] if s.obv else [None]
    values.append(s.cmf)
    values += (
        [s.ichimoku.conversion, s.ichimoku.base, s.ichimoku.span_a, s.ichimoku.span_b]
        if s.ichimoku
        else [None]
    )
    values.append(s.atr)
    values += [s.stochastic.k, s.stochastic.d] if s.stochastic else [None]
    return values


def _sign(value: float, weight: int = 1) -> int:
    if value > 0:
        return weight
    if value < 0:
        return -weight
    return 0


def strength_score(snapshot: IndicatorSnapshot) -> int:
    """
    Weighted strength sum for a fully defined snapshot.

    Args:
        snapshot: Snapshot with every required field defined

    Returns:
        Signed integer strength
    """
    price = snapshot.price
    strength = 0

    # RSI
    if snapshot.rsi <= RSI_OVERSOLD:
        strength += 2
    elif snapshot.rsi >= RSI_OVERBOUGHT:
        strength -= 2

    # MACD
    strength += _sign(snapshot.macd.histogram, 2)

    # Moving averages (unanimous only)
    for averages in (snapshot.smas(), snapshot.emas()):
        if all(price > ma for ma in averages):
            strength += 2
        elif all(price < ma for ma in averages):
            strength -= 2

    # ADX
    adx = snapshot.adx
    if adx.adx > ADX_TREND_THRESHOLD:
        strength += _sign(adx.plus_di - adx.minus_di)

    # VWAP
    strength += _sign(price - snapshot.vwap)

    # Bollinger Bands
    if price < snapshot.bollinger.lower:
        strength += 1
    elif price > snapshot.bollinger.upper:
        strength -= 1

    # OBV
    strength += _sign(snapshot.obv.obv - snapshot.obv.obv_sma)

    # CMF
    strength += _sign(snapshot.cmf)

    # Ichimoku
    cloud = snapshot.ichimoku
    if (
        price > cloud.conversion
        and price > cloud.base
        and cloud.span_a > cloud.span_b
        and price > cloud.span_a
    ):
        strength += 2
    elif (
        price < cloud.conversion
        and price < cloud.base
        and cloud.span_a < cloud.span_b
        and price < cloud.span_a
    ):
        strength -= 2

    # ATR band around price
    atr_upper = price + snapshot.atr * ATR_MULTIPLIER
    atr_lower = price - snapshot.atr * ATR_MULTIPLIER
    if price > atr_upper:
        strength += 1
    elif price < atr_lower:
        strength -= 1

    # Stochastic
    k, d = snapshot.stochastic.k, snapshot.stochastic.d
    if k <= STOCH_OVERSOLD and d <= STOCH_OVERSOLD:
        strength += 2
    elif k >= STOCH_OVERBOUGHT and d >= STOCH_OVERBOUGHT:
        strength -= 2
    else:
        strength += _sign(k - d)

    return strength


class StrengthPolicy:
    """BUY / SELL / NEUTRAL from a weighted multi-indicator strength sum."""

    name = "strength"

    def evaluate(
        self,
        snapshot: IndicatorSnapshot,
        now: datetime | None = None,
    ) -> Signal:
        if any(value is None for value in required_values(snapshot)):
            strength = 0
            classification = SignalType.NEUTRAL
        else:
            strength = strength_score(snapshot)
            if strength >= BUY_THRESHOLD:
                classification = SignalType.BUY
            elif strength <= SELL_THRESHOLD:
                classification = SignalType.SELL
            else:
                classification = SignalType.NEUTRAL

        return Signal(
            policy=self.name,
            symbol=snapshot.symbol,
            timeframe=snapshot.timeframe,
            classification=classification,
            strength=strength,
            timestamp=signal_timestamp(now),
            price=snapshot.price,
            indicators=snapshot,
        )
