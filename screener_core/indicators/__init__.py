"""Technical indicators (pure math, no I/O)."""

from screener_core.indicators.indicators import (
    adx,
    atr,
    bollinger_bands,
    cmf,
    crossover,
    directional_movement,
    ema,
    ema_series,
    fibonacci_retracement,
    highest,
    ichimoku_cloud,
    lowest,
    macd,
    obv,
    rsi,
    sma,
    sma_series,
    stochastic,
    true_range,
    vwap,
    wilder_smooth,
)

__all__ = [
    # Series helpers
    "sma_series",
    "ema_series",
    "highest",
    "lowest",
    "true_range",
    "wilder_smooth",
    "directional_movement",
    # Indicators
    "sma",
    "ema",
    "rsi",
    "macd",
    "adx",
    "atr",
    "vwap",
    "bollinger_bands",
    "obv",
    "fibonacci_retracement",
    "cmf",
    "ichimoku_cloud",
    "stochastic",
    "crossover",
]
