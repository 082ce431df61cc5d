"""
Sampling Engine - build replay samples from a captured transaction window.

Four strategies are available: last, random, unique (per method) and
frequency (proportional to method frequency). Each one validates the window
first, selects transactions, and overwrites its own sample file.
"""

from __future__ import annotations

import logging
import math
import random
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from upgrade_replay.domain.transaction import RawTransaction, TransactionWindow
from upgrade_replay.exceptions import InvalidStrategy
from upgrade_replay.store import transaction_store
from upgrade_replay.utils.logger import log_operation

logger = logging.getLogger(__name__)

STRATEGIES = ("last", "random", "unique", "frequency")


def sample_file_name(strategy: str) -> str:
    """File name a strategy persists its sample under."""
    if strategy not in STRATEGIES:
        raise InvalidStrategy(f"Unknown sampling strategy: {strategy}")
    return f"tx-sample-{strategy}.json"


@dataclass(frozen=True)
class Sample:
    """A strategy-tagged subset of a capture window."""

    strategy: str
    transactions: TransactionWindow
    path: Path

    def __len__(self) -> int:
        return len(self.transactions)

    @property
    def hashes(self) -> List[str]:
        return [tx.hash for tx in self.transactions]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def allocate_by_frequency(n: int, functions: Sequence[str]) -> Dict[str, int]:
    """
    Split n draws across methods in proportion to how often each appears.

    Methods are enumerated in order of first appearance in `functions`. Each
    allocation is round-half-up of n * count / total. The whole shortfall goes
    to the single most frequent method (earliest on ties), so several methods
    tied for the maximum do not share it. An excess is removed one at a
    time from the least frequent method that still has an allocation (latest on
    ties).

    Args:
        n: Total number of transactions to draw
        functions: Method name of every valid transaction

    Returns:
        Ordered mapping method -> allocated count, summing to exactly n
    """
    counts = Counter(functions)
    total = len(functions)
    order = list(dict.fromkeys(functions))

    allocation = {method: _round_half_up(n * counts[method] / total) for method in order}

    # max() keeps the first of equal keys, so ties go to the earliest method
    most_frequent = max(order, key=lambda method: counts[method])
    shortfall = n - sum(allocation.values())
    if shortfall > 0:
        allocation[most_frequent] += shortfall

    while sum(allocation.values()) > n:
        candidates = [method for method in order if allocation[method] > 0]
        least_frequent = min(reversed(candidates), key=lambda method: counts[method])
        allocation[least_frequent] -= 1

    return allocation


class SamplingEngine:
    """
    Build and persist samples from a validated window.

    Responsibilities:
    - Validate the requested size against the window
    - Select transactions according to a strategy
    - Shuffle with a seeded Fisher-Yates shuffle so runs are reproducible
    - Overwrite tx-sample-<strategy>.json in the samples directory
    """

    def __init__(self, samples_dir: Path | str, seed: Optional[int] = None) -> None:
        self.samples_dir = Path(samples_dir)
        self.seed = seed
        self._rng = random.Random(seed)

    def _shuffled(self, transactions: Sequence[RawTransaction]) -> List[RawTransaction]:
        shuffled = list(transactions)
        self._rng.shuffle(shuffled)
        return shuffled

    def _persist(self, strategy: str, transactions: Sequence[RawTransaction]) -> Sample:
        path = self.samples_dir / sample_file_name(strategy)
        transaction_store.save(transactions, path)
        logger.info(f"Sample saved as {path.name} ({len(transactions)} transactions)")
        return Sample(strategy=strategy, transactions=tuple(transactions), path=path)

    def sample_path(self, strategy: str) -> Path:
        return self.samples_dir / sample_file_name(strategy)

    @log_operation("sample_last")
    def last_n(self, n: int, window: TransactionWindow) -> Sample:
        """The n most recent valid transactions, in capture order."""
        valid = transaction_store.validate_window(n, window)
        return self._persist("last", valid[:n])

    @log_operation("sample_random")
    def random_n(self, n: int, window: TransactionWindow) -> Sample:
        """A uniform random subset of n valid transactions, without replacement."""
        valid = transaction_store.validate_window(n, window)
        return self._persist("random", self._shuffled(valid)[:n])

    @log_operation("sample_unique")
    def unique_n(self, n: int, window: TransactionWindow) -> Sample:
        """
        Up to n transactions per distinct method, in shuffle order.

        The sample size is bounded by n times the number of distinct methods.
        """
        valid = transaction_store.validate_window(n, window)

        per_method: Counter = Counter()
        selected: List[RawTransaction] = []
        for tx in self._shuffled(valid):
            if per_method[tx.function_name] < n:
                per_method[tx.function_name] += 1
                selected.append(tx)

        return self._persist("unique", selected)

    @log_operation("sample_frequency")
    def frequency_n(self, n: int, window: TransactionWindow) -> Sample:
        """
        n transactions split across methods in proportion to their frequency.

        Holds fewer than n when the most frequent method is allocated more
        transactions than it has.
        """
        valid = transaction_store.validate_window(n, window)

        allocation = allocate_by_frequency(n, [tx.function_name for tx in valid])
        logger.debug(f"Frequency allocation: {allocation}")

        shuffled = self._shuffled(valid)
        selected: List[RawTransaction] = []
        for method, count in allocation.items():
            method_txs = [tx for tx in shuffled if tx.function_name == method]
            selected.extend(method_txs[:count])

        if len(selected) < n:
            logger.warning(
                f"Frequency sample holds {len(selected)} of {n} requested transactions: "
                f"allocation {allocation} exceeds what some methods have"
            )

        return self._persist("frequency", self._shuffled(selected))

    def build(self, strategy: str, n: int, window: TransactionWindow) -> Sample:
        """Dispatch to a strategy by name."""
        builders = {
            "last": self.last_n,
            "random": self.random_n,
            "unique": self.unique_n,
            "frequency": self.frequency_n,
        }
        if strategy not in builders:
            raise InvalidStrategy(f"Unknown sampling strategy: {strategy}")
        return builders[strategy](n, window)
