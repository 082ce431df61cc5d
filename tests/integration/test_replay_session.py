"""
Integration tests: capture file -> sample -> replay session -> ledger,
driven both through the library and through the CLI entry point.
"""

import json
import sys
from pathlib import Path

import pytest
import yaml

from upgrade_replay.main import main
from upgrade_replay.replay.orchestrator import ReplayOrchestrator
from upgrade_replay.reporting.ledger import HarnessResult
from upgrade_replay.sampling.engine import SamplingEngine
from upgrade_replay.store import transaction_store

# Verdict script used as the harness command: transfers change storage,
# everything else replays identically.
HARNESS_SCRIPT = """
import json, os
tx = json.load(open(os.environ["REPLAY_TX_FILE"]))
changed = tx["functionName"].startswith("transfer")
json.dump(
    {
        "statusCode": 1 if changed else 0,
        "outcomeChanges": {"isEqual": True, "valueBefore": "", "valueAfter": ""},
        "storageChanges": [{"slot": "0x3"}] if changed else [],
        "duration": 2000,
    },
    open(os.environ["REPLAY_RESULT_FILE"], "w"),
)
"""


class RecordingHarness:
    def __init__(self):
        self.calls = []

    def run(self, transaction):
        self.calls.append(transaction.hash)
        return HarnessResult(status_code=0, duration_ms=500)


class TestLastSampleReplay:
    """A 10-entry capture with 7 successes, sampled and replayed end to end."""

    def test_last_five_sampled_and_replayed(self, replay_config, capture_entries):
        window = transaction_store.load(replay_config.transactions_path)
        engine = SamplingEngine(replay_config.samples_dir, seed=replay_config.sampling_seed)

        sample = engine.last_n(5, window)

        expected = [capture_entries[i]["hash"] for i in (0, 2, 3, 5, 6)]
        assert sample.hashes == expected
        assert sample.path == Path(replay_config.samples_dir) / "tx-sample-last.json"

        harness = RecordingHarness()
        orchestrator = ReplayOrchestrator(replay_config, harness)
        summary = orchestrator.run(orchestrator.resolve_transactions("last"))

        assert harness.calls == expected
        assert summary.passed == 5
        rows = orchestrator.ledger.read_rows()
        assert [row.split("$")[0] for row in rows[1:]] == expected
        entries = json.loads(orchestrator.ledger.keyed_store_path.read_text(encoding="utf-8"))
        assert list(entries) == expected


class TestCommandLine:
    """Tests for upgrade_replay.main.main."""

    @pytest.fixture
    def config_path(self, tmp_path, replay_config):
        values = {
            "reports_dir": replay_config.reports_dir,
            "transactions_path": replay_config.transactions_path,
            "samples_dir": replay_config.samples_dir,
            "deployed_sources_dir": replay_config.deployed_sources_dir,
            "upgraded_sources_dir": replay_config.upgraded_sources_dir,
            "proxy_path": replay_config.proxy_path,
            "upgraded_logic_path": replay_config.upgraded_logic_path,
            "deployed_proxy_address": replay_config.deployed_proxy_address,
            "deployed_logic_address": replay_config.deployed_logic_address,
            "harness_command": [sys.executable, "-c", HARNESS_SCRIPT],
            "sampling_seed": 5,
            "clean_dirs": list(replay_config.clean_dirs),
        }
        path = tmp_path / "replay-config.yaml"
        path.write_text(yaml.safe_dump(values), encoding="utf-8")
        return path

    def test_get_unique_then_replay(self, config_path, replay_config, capsys):
        assert main(["--config", str(config_path), "getUnique", "1"]) == 0
        assert "tx-sample-unique.json" in capsys.readouterr().out

        assert main(["--config", str(config_path), "replay", "unique"]) == 0

        reports = Path(replay_config.reports_dir)
        entries = json.loads((reports / "results.json").read_text(encoding="utf-8"))
        assert len(entries) == 4
        outcomes = {e["tx"]["functionName"]: e["replayOutcome"] for e in entries.values()}
        assert outcomes["transfer(address,uint256)"] == "storage-changed"
        assert outcomes["burn(uint256)"] == "none-changed"
        assert (reports / "SUMMARY.md").exists()

    def test_replay_single_hash(self, config_path, replay_config, capture_entries):
        tx_hash = capture_entries[3]["hash"]
        assert main(["--config", str(config_path), "replay", tx_hash]) == 0

        rows = (Path(replay_config.reports_dir) / "results.csv").read_text().splitlines()
        assert len(rows) == 2
        assert rows[1].startswith(tx_hash + "$mint(address,uint256)$")

    def test_sample_validation_error_exits_non_zero(self, config_path, capsys):
        assert main(["--config", str(config_path), "getLast", "8"]) == 1
        assert "Not enough valid transactions" in capsys.readouterr().err

    def test_sample_from_explicit_path(self, config_path, tmp_path, tx_factory, replay_config):
        other = tmp_path / "other.json"
        other.write_text(json.dumps([tx_factory(i) for i in range(3)]), encoding="utf-8")

        assert main(["--config", str(config_path), "getRandom", "2", str(other)]) == 0
        sample = transaction_store.load(Path(replay_config.samples_dir) / "tx-sample-random.json")
        assert len(sample) == 2

    def test_incomplete_config_exits_non_zero(self, tmp_path, replay_config, capsys):
        path = tmp_path / "incomplete.yaml"
        path.write_text(
            yaml.safe_dump({"transactions_path": replay_config.transactions_path}),
            encoding="utf-8",
        )

        assert main(["--config", str(path), "replay", "all"]) == 1
        assert "configuration incomplete" in capsys.readouterr().err.lower()

    def test_missing_sample_exits_non_zero(self, config_path):
        assert main(["--config", str(config_path), "replay", "frequency"]) == 1

    def test_usage_error_exits_non_zero(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["getLast"])
        assert exc_info.value.code != 0

    def test_clean(self, config_path, replay_config):
        artifacts = Path(replay_config.clean_dirs[0])
        (artifacts / "build-info").mkdir(parents=True)
        (artifacts / "build-info" / "a.json").write_text("{}")
        deployed = Path(replay_config.deployed_sources_dir)
        deployed.mkdir(parents=True)
        (deployed / "Token.sol").write_text("contract Token {}")

        assert main(["--config", str(config_path), "clean"]) == 0

        assert artifacts.exists()
        assert list(artifacts.iterdir()) == []
        assert not deployed.exists()
