"""Data models."""

from screener_core.models.candle import Candle, CandleSeries, series_from_closes
from screener_core.models.signal import (
    Signal,
    SignalType,
    TallySignalType,
    signal_timestamp,
)
from screener_core.models.snapshot import (
    EMA_PERIODS,
    FIB_RATIOS,
    SMA_PERIODS,
    AdxResult,
    BollingerBands,
    FibonacciLevels,
    IchimokuCloud,
    IndicatorSnapshot,
    MacdResult,
    ObvResult,
    StochasticResult,
)
from screener_core.models.timeframe import (
    TIMEFRAMES,
    is_valid_timeframe,
)

__all__ = [
    # Candles
    "Candle",
    "CandleSeries",
    "series_from_closes",
    # Snapshot
    "IndicatorSnapshot",
    "MacdResult",
    "AdxResult",
    "BollingerBands",
    "ObvResult",
    "FibonacciLevels",
    "IchimokuCloud",
    "StochasticResult",
    "FIB_RATIOS",
    "SMA_PERIODS",
    "EMA_PERIODS",
    # Signals
    "Signal",
    "SignalType",
    "TallySignalType",
    "signal_timestamp",
    # Timeframes
    "TIMEFRAMES",
    "is_valid_timeframe",
]
