"""Result Ledger - persist replay results as a row log, a keyed store and a summary."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from upgrade_replay.domain.status import (
    ReplayOutcome,
    StatusCode,
    describe_replay_outcome,
    has_outcome_changed,
    has_storage_changed,
)
from upgrade_replay.domain.transaction import RawTransaction
from upgrade_replay.exceptions import LedgerWriteFailure

logger = logging.getLogger(__name__)

DELIMITER = "$"

ROW_HEADERS = [
    "transaction",
    "function",
    "input",
    "value",
    "hasOutcomeChanged",
    "outcomeBefore",
    "outcomeAfter",
    "hasStorageChanged",
    "storageChanges",
    "replayOutcome",
    "replayResult",
    "replayStatusCode",
    "duration",
]


def format_duration(duration_ms: Optional[float]) -> str:
    """Render a duration in milliseconds as "H.M.S"."""
    total_ms = int(duration_ms or 0)
    hours = total_ms // (1000 * 60 * 60)
    minutes = (total_ms % (1000 * 60 * 60)) // (1000 * 60)
    seconds = (total_ms % (1000 * 60)) // 1000
    return f"{hours}.{minutes}.{seconds}"


@dataclass
class HarnessResult:
    """What the harness reports back for one replayed transaction."""

    status_code: Optional[int]
    outcome_changes: Optional[Dict[str, Any]] = None
    storage_changes: List[Any] = field(default_factory=list)
    duration_ms: int = 0
    decoded_input: Optional[List[Dict[str, Any]]] = None


@dataclass
class ReplayResult:
    """Classified outcome of one replay attempt."""

    transaction: RawTransaction
    status: StatusCode
    raw_status_code: Optional[int]
    outcome_changed: bool
    storage_changed: bool
    replay_outcome: ReplayOutcome
    outcome_changes: Optional[Dict[str, Any]]
    storage_changes: List[Any]
    input: List[Any]
    duration_ms: int

    @classmethod
    def from_harness(cls, transaction: RawTransaction, result: HarnessResult) -> "ReplayResult":
        status = StatusCode.from_code(result.status_code)
        outcome_changed = has_outcome_changed(result.outcome_changes)
        storage_changed = has_storage_changed(result.storage_changes)
        if result.decoded_input is not None:
            tx_input = list(result.decoded_input)
        else:
            tx_input = [transaction.input]
        return cls(
            transaction=transaction,
            status=status,
            raw_status_code=result.status_code,
            outcome_changed=outcome_changed,
            storage_changed=storage_changed,
            replay_outcome=describe_replay_outcome(status, outcome_changed, storage_changed),
            outcome_changes=result.outcome_changes,
            storage_changes=list(result.storage_changes or []),
            input=tx_input,
            duration_ms=int(result.duration_ms or 0),
        )

    @property
    def duration(self) -> str:
        return format_duration(self.duration_ms)

    @property
    def passed(self) -> bool:
        return (
            self.status is StatusCode.SUCCESS_NO_CHANGE
            and self.replay_outcome is ReplayOutcome.NONE_CHANGED
        )

    def to_row(self) -> str:
        """Render as one delimiter-joined row log line, including the trailing newline."""
        before = after = None
        if self.outcome_changes:
            before = _quote_empty(self.outcome_changes.get("valueBefore"))
            after = _quote_empty(self.outcome_changes.get("valueAfter"))

        cells = [
            self.transaction.hash,
            self.transaction.function_name,
            json.dumps(self.input, separators=(",", ":")),
            self.transaction.value,
            _bool_cell(self.outcome_changed),
            before,
            after,
            _bool_cell(self.storage_changed),
            json.dumps(self.storage_changes, separators=(",", ":")),
            self.replay_outcome.value,
            self.status.label,
            self.raw_status_code,
            self.duration,
        ]
        return DELIMITER.join(_escape_cell(cell) for cell in cells) + "\n"

    def to_entry(self) -> Dict[str, Any]:
        """Render as the keyed-store entry for this transaction."""
        return {
            "replayOutcome": self.replay_outcome.value,
            "statusCode": self.raw_status_code,
            "tx": {
                "hash": self.transaction.hash,
                "functionName": self.transaction.function_name,
                "input": self.input,
                "value": self.transaction.value,
            },
            "outcomeChanges": self.outcome_changes,
            "storageChanges": self.storage_changes,
            "testDuration": self.duration,
        }


def _bool_cell(value: bool) -> str:
    return "true" if value else "false"


def _quote_empty(value: Any) -> Any:
    return '""' if value == "" else value


def _escape_cell(value: Any) -> str:
    """Keep a cell on one line and free of the delimiter."""
    if value is None:
        return ""
    return (
        str(value)
        .replace(DELIMITER, "\\u0024")
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )


class ResultLedger:
    """
    Dual-format replay ledger.

    Responsibilities:
    - Reset both report files at the start of a session
    - Append one row per replay attempt to results.csv (repeats included)
    - Upsert one entry per hash in results.json (last write wins)
    - Write a Markdown summary at the end of a session
    """

    def __init__(self, reports_dir: Path | str) -> None:
        self.reports_dir = Path(reports_dir)
        self.row_log_path = self.reports_dir / "results.csv"
        self.keyed_store_path = self.reports_dir / "results.json"
        self.summary_path = self.reports_dir / "SUMMARY.md"

    @property
    def header(self) -> str:
        return DELIMITER.join(ROW_HEADERS) + "\n"

    def initialize(self) -> None:
        """Truncate the row log to its header and empty the keyed store."""
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        self.row_log_path.write_text(self.header, encoding="utf-8")
        self.keyed_store_path.write_text("{}", encoding="utf-8")
        logger.info(f"Initialized replay reports in {self.reports_dir}")

    def record(self, transaction: RawTransaction, result: HarnessResult) -> ReplayResult:
        """
        Classify one harness result and write it to both ledger forms.

        Raises:
            LedgerWriteFailure: If initialize() has not created the report files
        """
        return self.write(ReplayResult.from_harness(transaction, result))

    def write(self, replay_result: ReplayResult) -> ReplayResult:
        """Write an already classified result to both ledger forms."""
        self.append_row(replay_result)
        self.upsert_entry(replay_result)
        return replay_result

    def append_row(self, replay_result: ReplayResult) -> None:
        self._require(self.row_log_path)
        with self.row_log_path.open("a", encoding="utf-8") as f:
            f.write(replay_result.to_row())

    def upsert_entry(self, replay_result: ReplayResult) -> None:
        self._require(self.keyed_store_path)
        entries = self._read_entries()
        entries[replay_result.transaction.hash] = replay_result.to_entry()
        self.keyed_store_path.write_text(json.dumps(entries, indent=2), encoding="utf-8")

    def read_entry(self, tx_hash: str, field_name: Optional[str] = None) -> Any:
        """Return the keyed-store entry for a hash (or one of its fields), None if absent."""
        entry = self._read_entries().get(tx_hash)
        if entry is None or field_name is None:
            return entry
        return entry.get(field_name)

    def read_rows(self) -> List[str]:
        """Return the row log lines, header included."""
        self._require(self.row_log_path)
        return self.row_log_path.read_text(encoding="utf-8").splitlines()

    def _read_entries(self) -> Dict[str, Any]:
        if not self.keyed_store_path.exists():
            return {}
        return json.loads(self.keyed_store_path.read_text(encoding="utf-8"))

    def _require(self, path: Path) -> None:
        if not path.exists():
            raise LedgerWriteFailure(f"Could not access {path}; initialize the ledger first")

    def generate_summary(self, results: List[ReplayResult], started_at: datetime) -> str:
        total = len(results)
        succeeded = [r for r in results if r.status.is_success]
        passed = sum(1 for r in results if r.passed)

        status_counts: Dict[str, int] = {}
        outcome_counts: Dict[str, int] = {}
        for r in results:
            status_counts[r.status.label] = status_counts.get(r.status.label, 0) + 1
            outcome_counts[r.replay_outcome.value] = outcome_counts.get(r.replay_outcome.value, 0) + 1

        pass_rate = (passed / total * 100) if total else 0.0
        md_lines = [
            "# Replay Testing - Session Summary",
            f"**Started:** {started_at.isoformat()}",
            f"**Generated:** {datetime.now().isoformat()}",
            "",
            "## Overall Results",
            f"- **Transactions Replayed:** {total}",
            f"- **Executed Successfully:** {len(succeeded)}",
            f"- **Unchanged Behavior:** {passed}",
            f"- **Pass Rate:** {pass_rate:.1f}%",
            "",
            "## Status Codes",
        ]
        md_lines.extend(f"- `{label}`: {count}" for label, count in sorted(status_counts.items()))
        md_lines.extend(["", "## Replay Outcomes"])
        md_lines.extend(f"- `{label}`: {count}" for label, count in sorted(outcome_counts.items()))

        changed = [r for r in results if not r.passed]
        if changed:
            md_lines.extend(["", "## Transactions Needing Review", ""])
            for r in changed:
                md_lines.append(
                    f"- **{r.transaction.hash}** `{r.transaction.function_name}` "
                    f"{r.status.label} / {r.replay_outcome.value}"
                )

        return "\n".join(md_lines) + "\n"

    def write_summary(self, results: List[ReplayResult], started_at: datetime) -> Path:
        self.summary_path.write_text(self.generate_summary(results, started_at), encoding="utf-8")
        logger.info(f"Wrote session summary: {self.summary_path}")
        return self.summary_path
