"""
Replay status codes and the rules that derive a replay outcome from them.

The harness reports an integer code per transaction. The ledger and the
orchestrator both classify results through this module so that the row log
and the keyed store never disagree.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class StatusCode(Enum):
    """Closed set of replay status codes, valued by the harness's integer code."""

    SUCCESS_NO_CHANGE = 0
    SUCCESS_CHANGED = 1
    TIMEOUT_ON_DEPLOYED = 2
    TIMEOUT_ON_UPGRADED = 3
    MISSING_OUTCOME = 4
    NOT_EXECUTED = 10
    UNKNOWN = -1

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_success(self) -> bool:
        return self in (StatusCode.SUCCESS_NO_CHANGE, StatusCode.SUCCESS_CHANGED)

    @classmethod
    def from_code(cls, code: Optional[int]) -> "StatusCode":
        """
        Map a raw harness code onto the enum.

        None means the harness never ran the transaction. Any integer outside
        the known set falls back to UNKNOWN.
        """
        if code is None:
            return cls.NOT_EXECUTED
        if isinstance(code, StatusCode):
            return code
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNKNOWN


_LABELS = {
    StatusCode.SUCCESS_NO_CHANGE: "success-no-change",
    StatusCode.SUCCESS_CHANGED: "success-changed",
    StatusCode.TIMEOUT_ON_DEPLOYED: "timeout-on-deployed",
    StatusCode.TIMEOUT_ON_UPGRADED: "timeout-on-upgraded",
    StatusCode.MISSING_OUTCOME: "missing-outcome",
    StatusCode.NOT_EXECUTED: "not-executed",
    StatusCode.UNKNOWN: "unknown",
}


class ReplayOutcome(Enum):
    """Descriptive label for what changed between the two contract versions."""

    OUTCOME_STORAGE_CHANGED = "outcome-storage-changed"
    OUTCOME_CHANGED = "outcome-changed"
    STORAGE_CHANGED = "storage-changed"
    NONE_CHANGED = "none-changed"
    UNKNOWN = "unknown"


def has_storage_changed(storage_changes: Optional[List[Any]]) -> bool:
    """Storage changed when the storage-diff payload is non-empty."""
    return bool(storage_changes)


def has_outcome_changed(outcome_changes: Optional[Dict[str, Any]]) -> bool:
    """Outcome changed when a non-empty outcome diff is present and not flagged equal."""
    if not outcome_changes:
        return False
    return not outcome_changes.get("isEqual", False)


def describe_replay_outcome(
    status: StatusCode, outcome_changed: bool, storage_changed: bool
) -> ReplayOutcome:
    """
    Derive the replay outcome label.

    Only successful replays carry a meaningful diff; every other status is UNKNOWN
    regardless of the booleans.
    """
    if not status.is_success:
        return ReplayOutcome.UNKNOWN
    if outcome_changed and storage_changed:
        return ReplayOutcome.OUTCOME_STORAGE_CHANGED
    if outcome_changed:
        return ReplayOutcome.OUTCOME_CHANGED
    if storage_changed:
        return ReplayOutcome.STORAGE_CHANGED
    return ReplayOutcome.NONE_CHANGED
