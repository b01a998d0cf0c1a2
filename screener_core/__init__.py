"""Core logic for indicator snapshots and signal classification.

This package contains pure business logic with no I/O dependencies
(no Redis or network access). It is shared between the live cache
service (screener/) and historical evaluation of candle windows.
"""
