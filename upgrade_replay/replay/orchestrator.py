"""
Replay Session Orchestrator

Drives one replay session: verifies configuration, resets the ledger, replays
each transaction through the harness strictly in order, and records every
result. Only setup failures are fatal; a failing transaction is recorded and
the session moves on.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from upgrade_replay.config.settings import ReplayConfig
from upgrade_replay.domain.status import StatusCode
from upgrade_replay.domain.transaction import RawTransaction, TransactionWindow
from upgrade_replay.exceptions import HarnessFailure, InvalidStrategy, SampleNotFound
from upgrade_replay.replay.harness import Harness
from upgrade_replay.reporting.ledger import HarnessResult, ReplayResult, ResultLedger
from upgrade_replay.sampling.engine import STRATEGIES, sample_file_name
from upgrade_replay.store import transaction_store
from upgrade_replay.utils.logger import get_logger, short_hash

logger = get_logger(__name__)


class SessionState(Enum):
    SETUP = "setup"
    RUNNING = "running"
    DONE = "done"


@dataclass
class ReplaySessionSummary:
    """Aggregate outcome of a replay session."""

    started_at: datetime
    results: List[ReplayResult] = field(default_factory=list)
    summary_path: Optional[Path] = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def status_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for r in self.results:
            counts[r.status.label] = counts.get(r.status.label, 0) + 1
        return counts


class ReplayOrchestrator:
    """
    Sequential replay of a transaction list through a single harness.

    Responsibilities:
    - Refuse to start when configuration is incomplete
    - Initialize the ledger exactly once per session
    - Call the harness for one transaction at a time
    - Record each result in the ledger and log pass/fail
    - Summarize the session once every transaction has been processed
    """

    def __init__(
        self,
        config: ReplayConfig,
        harness: Harness,
        ledger: Optional[ResultLedger] = None,
    ) -> None:
        self.config = config
        self.harness = harness
        self.ledger = ledger or ResultLedger(config.reports_dir)
        self.state = SessionState.SETUP

    def resolve_transactions(self, strategy: str) -> TransactionWindow:
        """
        Turn a replay strategy into the list of transactions to replay.

        Args:
            strategy: A transaction hash (0x...), "all", or a sample name
                (last, random, unique, frequency)

        Raises:
            InvalidStrategy: For an unrecognized strategy
            SampleNotFound: When the requested sample file was never built
        """
        if strategy.startswith("0x"):
            window = transaction_store.load(self.config.transactions_path)
            return (transaction_store.get_transaction(strategy, window),)

        if strategy == "all":
            return transaction_store.load(self.config.transactions_path)

        if strategy in STRATEGIES:
            sample_path = Path(self.config.samples_dir) / sample_file_name(strategy)
            if not sample_path.exists():
                raise SampleNotFound(
                    f"{sample_path} does not exist; build the '{strategy}' sample first"
                )
            return transaction_store.load(sample_path)

        raise InvalidStrategy(
            f"Unknown replay strategy '{strategy}'. "
            f"Use a transaction hash, 'all', or one of: {', '.join(STRATEGIES)}"
        )

    def setup(self) -> None:
        """
        Verify configuration and reset the ledger.

        Raises:
            ConfigIncomplete: If any required configuration value is missing
        """
        self.state = SessionState.SETUP
        logger.info("Setting up testing environment", operation="replay_setup")
        self.config.require_complete()
        self.ledger.initialize()

    def run(self, transactions: Sequence[RawTransaction]) -> ReplaySessionSummary:
        """
        Run a full session over the given transactions.

        Returns:
            Summary with one ReplayResult per transaction, in input order
        """
        summary = ReplaySessionSummary(started_at=datetime.now())
        self.setup()

        self.state = SessionState.RUNNING
        logger.info(
            f"Replaying {len(transactions)} transactions",
            operation="replay_session",
            context={"count": len(transactions)},
        )
        for transaction in transactions:
            summary.results.append(self.replay_one(transaction))

        self.state = SessionState.DONE
        summary.summary_path = self.ledger.write_summary(summary.results, summary.started_at)
        logger.info(
            "Done",
            operation="replay_session",
            context={
                "total": summary.total,
                "passed": summary.passed,
                "status_counts": summary.status_counts,
            },
        )
        return summary

    def replay_one(self, transaction: RawTransaction) -> ReplayResult:
        """Replay a single transaction and record it; harness errors become status codes."""
        context = {
            "tx_hash": short_hash(transaction.hash),
            "function": transaction.function_name,
        }
        try:
            harness_result = self.harness.run(transaction)
        except HarnessFailure as e:
            logger.error(
                "Harness failed", operation="replay_transaction", context=context, error=str(e)
            )
            harness_result = HarnessResult(status_code=StatusCode.UNKNOWN.value)
        except Exception as e:
            logger.error(
                "Unexpected harness error",
                operation="replay_transaction",
                context=context,
                error=f"{type(e).__name__}: {e}",
            )
            harness_result = HarnessResult(status_code=StatusCode.UNKNOWN.value)

        try:
            result = ReplayResult.from_harness(transaction, harness_result)
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(
                "Unclassifiable harness result",
                operation="replay_transaction",
                context=context,
                error=f"{type(e).__name__}: {e}",
            )
            result = ReplayResult.from_harness(
                transaction, HarnessResult(status_code=StatusCode.UNKNOWN.value)
            )
        self.ledger.write(result)

        context.update({"status": result.status.label, "outcome": result.replay_outcome.value})
        if result.passed:
            logger.info(
                f"Replay testing session for {transaction.hash} passed in {result.duration}",
                operation="replay_transaction",
                context=context,
                duration_ms=result.duration_ms,
            )
        else:
            logger.warning(
                f"Replay testing session for {transaction.hash} failed in {result.duration}",
                operation="replay_transaction",
                context=context,
            )
        return result
