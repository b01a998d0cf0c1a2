"""Signal policy protocol.

A policy turns one IndicatorSnapshot into a classified Signal. Policies
are pure: they never fetch, cache or mutate anything.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from screener_core.models.signal import Signal
from screener_core.models.snapshot import IndicatorSnapshot


@runtime_checkable
class SignalPolicy(Protocol):
    """Protocol that all signal policies must implement."""

    @property
    def name(self) -> str:
        """Unique policy identifier (e.g., 'strength')."""
        ...

    def evaluate(
        self,
        snapshot: IndicatorSnapshot,
        now: datetime | None = None,
    ) -> Signal | None:
        """Classify a snapshot.

        Args:
            snapshot: Indicator snapshot to score.
            now: Evaluation time (defaults to current UTC time).

        Returns:
            Signal, or None if the policy emits nothing for this snapshot.
        """
        ...
