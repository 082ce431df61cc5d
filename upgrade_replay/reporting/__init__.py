"""Replay result persistence."""

from .ledger import (
    DELIMITER,
    ROW_HEADERS,
    HarnessResult,
    ReplayResult,
    ResultLedger,
    format_duration,
)

__all__ = [
    "DELIMITER",
    "ROW_HEADERS",
    "HarnessResult",
    "ReplayResult",
    "ResultLedger",
    "format_duration",
]
