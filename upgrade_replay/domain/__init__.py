"""Domain models for captured transactions and replay status codes."""

from .status import (
    ReplayOutcome,
    StatusCode,
    describe_replay_outcome,
    has_outcome_changed,
    has_storage_changed,
)
from .transaction import RawTransaction, TransactionWindow

__all__ = [
    "RawTransaction",
    "TransactionWindow",
    "StatusCode",
    "ReplayOutcome",
    "describe_replay_outcome",
    "has_outcome_changed",
    "has_storage_changed",
]
