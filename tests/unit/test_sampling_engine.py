"""
Unit tests for the sampling engine (upgrade_replay/sampling/engine.py)

Tests covering:
- last / random / unique / frequency selection rules
- Seeded, reproducible shuffles
- Frequency allocation arithmetic and tie-breaking
- Sample persistence and file naming
"""

import json
import logging
from collections import Counter

import pytest

from upgrade_replay.domain.transaction import RawTransaction
from upgrade_replay.exceptions import InsufficientValid, InvalidCount, InvalidStrategy
from upgrade_replay.sampling.engine import (
    SamplingEngine,
    allocate_by_frequency,
    sample_file_name,
)
from upgrade_replay.store import transaction_store


@pytest.fixture
def engine(tmp_path):
    return SamplingEngine(tmp_path / "samples", seed=42)


class TestSampleFileName:
    """Each strategy owns a distinct sample file."""

    def test_names_are_distinct(self):
        names = {sample_file_name(s) for s in ("last", "random", "unique", "frequency")}
        assert names == {
            "tx-sample-last.json",
            "tx-sample-random.json",
            "tx-sample-unique.json",
            "tx-sample-frequency.json",
        }

    def test_unknown_strategy(self):
        with pytest.raises(InvalidStrategy):
            sample_file_name("everything")


class TestLastN:
    """Tests for SamplingEngine.last_n."""

    def test_last_n_takes_most_recent_valid(self, engine, window):
        """The 5 most recent of the 7 valid entries, in original relative order."""
        sample = engine.last_n(5, window)

        assert len(sample) == 5
        assert sample.hashes == [window[i].hash for i in (0, 2, 3, 5, 6)]

    def test_last_n_is_not_randomized(self, tmp_path, window):
        """Different seeds produce the same last-N sample."""
        first = SamplingEngine(tmp_path / "a", seed=1).last_n(4, window)
        second = SamplingEngine(tmp_path / "b", seed=999).last_n(4, window)
        assert first.hashes == second.hashes

    def test_last_n_persists_sample(self, engine, window):
        """Sample is written to tx-sample-last.json in capture shape."""
        sample = engine.last_n(3, window)

        assert sample.path.name == "tx-sample-last.json"
        saved = json.loads(sample.path.read_text(encoding="utf-8"))
        assert [entry["hash"] for entry in saved] == sample.hashes

    def test_last_n_overwrites_previous_sample(self, engine, window):
        engine.last_n(5, window)
        sample = engine.last_n(2, window)

        assert len(transaction_store.load(sample.path)) == 2

    def test_last_n_validates_window(self, engine, window):
        with pytest.raises(InvalidCount):
            engine.last_n(0, window)
        with pytest.raises(InsufficientValid):
            engine.last_n(8, window)


class TestRandomN:
    """Tests for SamplingEngine.random_n."""

    def test_random_n_distinct_valid_members(self, engine, window):
        """Exactly n distinct transactions, all drawn from the valid subset."""
        sample = engine.random_n(5, window)
        valid_hashes = {tx.hash for tx in window if tx.is_valid}

        assert len(sample) == 5
        assert len(set(sample.hashes)) == 5
        assert set(sample.hashes) <= valid_hashes

    def test_random_n_reproducible_with_seed(self, tmp_path, window):
        """Same seed, same sample."""
        first = SamplingEngine(tmp_path / "a", seed=7).random_n(4, window)
        second = SamplingEngine(tmp_path / "b", seed=7).random_n(4, window)
        assert first.hashes == second.hashes

    def test_random_n_full_valid_subset(self, engine, window):
        """Sampling all valid entries returns a permutation of them."""
        sample = engine.random_n(7, window)
        assert sorted(sample.hashes) == sorted(tx.hash for tx in window if tx.is_valid)

    def test_random_n_file_name(self, engine, window):
        assert engine.random_n(2, window).path.name == "tx-sample-random.json"


class TestUniqueN:
    """Tests for SamplingEngine.unique_n."""

    def test_unique_one_per_method(self, engine, window):
        """n=1 keeps exactly one transaction for every valid method."""
        sample = engine.unique_n(1, window)
        counts = Counter(tx.function_name for tx in sample.transactions)

        assert set(counts) == {tx.function_name for tx in window if tx.is_valid}
        assert all(count == 1 for count in counts.values())

    def test_unique_caps_each_method(self, engine, window):
        """No method exceeds n entries; size bounded by n x distinct methods."""
        sample = engine.unique_n(2, window)
        counts = Counter(tx.function_name for tx in sample.transactions)

        assert all(count <= 2 for count in counts.values())
        # valid: transfer x4, mint x1, approve x1, burn x1
        assert counts["transfer(address,uint256)"] == 2
        assert len(sample) == 5

    def test_unique_excludes_reverted(self, engine, window):
        sample = engine.unique_n(3, window)
        assert all(tx.is_valid for tx in sample.transactions)

    def test_unique_file_does_not_collide_with_random(self, engine, window):
        random_sample = engine.random_n(3, window)
        unique_sample = engine.unique_n(1, window)

        assert random_sample.path != unique_sample.path
        assert random_sample.path.exists()


class TestAllocateByFrequency:
    """Tests for allocate_by_frequency arithmetic."""

    def test_exact_proportions(self):
        functions = ["a"] * 6 + ["b"] * 3 + ["c"]
        assert allocate_by_frequency(10, functions) == {"a": 6, "b": 3, "c": 1}

    def test_shortfall_goes_to_earliest_most_frequent(self):
        """a and b tie for most frequent; the whole shortfall goes to a."""
        functions = ["a", "b", "a", "b", "c", "a", "d", "b", "e"]
        # a=3, b=3, c=d=e=1 over 9: rounds to a=1, b=1, others 0 -> short by 2
        allocation = allocate_by_frequency(4, functions)

        assert allocation == {"a": 3, "b": 1, "c": 0, "d": 0, "e": 0}
        assert sum(allocation.values()) == 4

    def test_tie_break_follows_first_appearance(self):
        """Reversing first appearance moves the top-up to b."""
        functions = ["b", "a", "a", "b", "c", "a", "d", "b", "e"]
        allocation = allocate_by_frequency(4, functions)

        assert allocation["b"] == 3
        assert allocation["a"] == 1

    def test_excess_removed_from_least_frequent(self):
        """Half-up rounding overshoots; latest least-frequent methods give back."""
        functions = ["a", "b", "c", "d"]
        allocation = allocate_by_frequency(2, functions)

        assert allocation == {"a": 1, "b": 1, "c": 0, "d": 0}

    @pytest.mark.parametrize("n", range(1, 13))
    def test_sum_always_equals_n(self, n):
        functions = ["x"] * 5 + ["y"] * 4 + ["z"] * 2 + ["w"]
        assert sum(allocate_by_frequency(n, functions).values()) == n


class TestFrequencyN:
    """Tests for SamplingEngine.frequency_n."""

    @pytest.fixture
    def skewed_window(self, tx_factory):
        names = ["a"] * 6 + ["b"] * 3 + ["c"]
        return tuple(
            RawTransaction.from_dict(tx_factory(i, function_name=name))
            for i, name in enumerate(names)
        )

    def test_frequency_matches_allocation(self, engine, skewed_window):
        sample = engine.frequency_n(5, skewed_window)
        counts = Counter(tx.function_name for tx in sample.transactions)

        # 6/10*5=3, 3/10*5=1.5->2, 1/10*5=0.5->1 -> 6, trimmed from c
        assert len(sample) == 5
        assert counts == {"a": 3, "b": 2}

    def test_frequency_short_when_top_method_exhausted(self, engine, tx_factory, caplog):
        """The whole rounding shortfall lands on a method that cannot cover it."""
        names = ["a", "a", "b", "c", "d", "e", "f"]
        window = tuple(
            RawTransaction.from_dict(tx_factory(i, function_name=name))
            for i, name in enumerate(names)
        )
        assert allocate_by_frequency(3, names)["a"] == 3

        with caplog.at_level(logging.WARNING, logger="upgrade_replay.sampling.engine"):
            sample = engine.frequency_n(3, window)

        assert len(sample) == 2
        assert {tx.function_name for tx in sample.transactions} == {"a"}
        assert "2 of 3" in caplog.text

    def test_frequency_distinct_members(self, engine, window):
        sample = engine.frequency_n(6, window)
        assert len(set(sample.hashes)) == len(sample) == 6
        assert all(tx.is_valid for tx in sample.transactions)

    def test_frequency_file_name(self, engine, window):
        assert engine.frequency_n(3, window).path.name == "tx-sample-frequency.json"


class TestBuild:
    """Tests for strategy dispatch."""

    def test_build_dispatches(self, engine, window):
        assert engine.build("last", 2, window).strategy == "last"

    def test_build_unknown_strategy(self, engine, window):
        with pytest.raises(InvalidStrategy):
            engine.build("user", 2, window)
