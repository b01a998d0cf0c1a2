"""Business services."""

from screener.services.candles import CandleService
from screener.services.orchestrator import CacheOrchestrator, PopulateReport, TimeframeStatus
from screener.services.scanner import SignalScanner

__all__ = [
    "CandleService",
    "CacheOrchestrator",
    "PopulateReport",
    "TimeframeStatus",
    "SignalScanner",
]
