"""Signal data models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict

from screener_core.models.snapshot import IndicatorSnapshot


class SignalType(str, Enum):
    """Classification produced by the strength-sum policy."""

    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"


class TallySignalType(str, Enum):
    """Classification produced by the tally/threshold policy."""

    BUY = "Buy"
    SELL = "Sell"
    TRENDING = "trending"


class Signal(BaseModel):
    """A classified trade signal for one snapshot.

    Signals are derived on demand and never cached.
    """

    model_config = ConfigDict(frozen=True)

    policy: str
    symbol: str
    timeframe: str
    classification: SignalType | TallySignalType
    strength: int
    timestamp: str  # ISO-8601, UTC
    price: float
    indicators: IndicatorSnapshot

    # Tally policy only
    moving_averages: int | None = None
    oscillators: int | None = None

    @property
    def is_actionable(self) -> bool:
        """True for anything other than a neutral classification."""
        return self.classification != SignalType.NEUTRAL


def signal_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp for a signal evaluated at ``now``."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).isoformat()
