"""Canonical timeframe enumeration.

Every component (population, sweeps, overviews, historical evaluation)
iterates this one set.
"""

TIMEFRAMES: tuple[str, ...] = ("1m", "5m", "15m", "30m", "1h", "4h", "1d", "1w")


def is_valid_timeframe(timeframe: str) -> bool:
    """Check that a timeframe belongs to the canonical enumeration."""
    return timeframe in TIMEFRAMES
