"""
Harness contract and the command-line harness adapter.

A harness replays one transaction against the deployed and the upgraded
contract and reports the difference. It mutates a single forked execution
environment, so only one call may be in flight at a time.
"""

import json
import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence

from upgrade_replay.config.settings import ReplayConfig
from upgrade_replay.domain.status import StatusCode
from upgrade_replay.domain.transaction import RawTransaction
from upgrade_replay.exceptions import HarnessFailure
from upgrade_replay.reporting.ledger import HarnessResult

logger = logging.getLogger(__name__)

# Environment handed to the harness process
TX_FILE_ENV = "REPLAY_TX_FILE"
TX_HASH_ENV = "REPLAY_TX_HASH"
RESULT_FILE_ENV = "REPLAY_RESULT_FILE"


class Harness(Protocol):
    """Synchronously replay one transaction and return its result."""

    def run(self, transaction: RawTransaction) -> HarnessResult:
        ...


def parse_harness_output(payload: Dict[str, Any]) -> HarnessResult:
    """
    Build a HarnessResult from the JSON a harness writes.

    Expected keys: statusCode, outcomeChanges, storageChanges, duration (ms)
    and optionally input (decoded arguments as a list of {name: value}).

    Raises:
        HarnessFailure: If the payload or one of its fields has the wrong shape
    """
    if not isinstance(payload, dict):
        raise HarnessFailure(f"Harness verdict must be a JSON object, got {type(payload).__name__}")
    expected = {
        "outcomeChanges": (dict, type(None)),
        "storageChanges": (list, type(None)),
        "input": (list, type(None)),
        "statusCode": (int, type(None)),
        "duration": (int, float, str, type(None)),
    }
    for key, types in expected.items():
        value = payload.get(key)
        if not isinstance(value, types) or isinstance(value, bool):
            raise HarnessFailure(
                f"Harness verdict field '{key}' has unexpected type {type(value).__name__}"
            )

    try:
        duration_ms = int(float(payload.get("duration") or 0))
    except ValueError as e:
        raise HarnessFailure(f"Harness verdict duration is not a number: {e}") from e

    return HarnessResult(
        status_code=payload.get("statusCode"),
        outcome_changes=payload.get("outcomeChanges"),
        storage_changes=payload.get("storageChanges") or [],
        duration_ms=duration_ms,
        decoded_input=payload.get("input"),
    )


class CommandHarness:
    """
    Run an external test command once per transaction.

    The transaction is written to a JSON file whose path is exported as
    REPLAY_TX_FILE. The command writes its verdict to REPLAY_RESULT_FILE.
    A command that exits without writing a verdict is reported as
    missing-outcome.
    """

    def __init__(
        self,
        command: Sequence[str],
        work_dir: Path,
        result_path: Path,
        extra_env: Optional[Dict[str, str]] = None,
    ) -> None:
        self.command = list(command)
        self.work_dir = Path(work_dir)
        self.result_path = Path(result_path)
        self.tx_path = self.result_path.with_name("harness-transaction.json")
        self.extra_env = dict(extra_env or {})

    @classmethod
    def from_config(cls, config: ReplayConfig) -> "CommandHarness":
        return cls(
            command=config.harness_command,
            work_dir=Path.cwd(),
            result_path=config.harness_result_path,
            extra_env={
                "REPLAY_PROXY_PATH": config.proxy_path,
                "REPLAY_UPGRADED_LOGIC_PATH": config.upgraded_logic_path,
                "REPLAY_DEPLOYED_PROXY_ADDRESS": config.deployed_proxy_address,
                "REPLAY_DEPLOYED_LOGIC_ADDRESS": config.deployed_logic_address,
                "REPLAY_DEPLOYED_SOURCES_DIR": config.deployed_sources_dir,
                "REPLAY_UPGRADED_SOURCES_DIR": config.upgraded_sources_dir,
                "REPLAY_STATE_VARS_BLACKLIST": ",".join(config.state_vars_blacklist),
            },
        )

    def _environment(self, transaction: RawTransaction) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(self.extra_env)
        env[TX_FILE_ENV] = str(self.tx_path)
        env[TX_HASH_ENV] = transaction.hash
        env[RESULT_FILE_ENV] = str(self.result_path)
        return env

    def run(self, transaction: RawTransaction) -> HarnessResult:
        """
        Replay one transaction through the external command.

        Raises:
            HarnessFailure: If the command cannot be started or writes an unreadable verdict
        """
        self.tx_path.parent.mkdir(parents=True, exist_ok=True)
        self.tx_path.write_text(json.dumps(transaction.to_dict()), encoding="utf-8")
        if self.result_path.exists():
            self.result_path.unlink()

        start_time = time.monotonic()
        try:
            completed = subprocess.run(
                self.command,
                cwd=self.work_dir,
                env=self._environment(transaction),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise HarnessFailure(f"Could not start harness {self.command[0]!r}: {e}") from e
        elapsed_ms = int((time.monotonic() - start_time) * 1000)

        if completed.returncode != 0:
            logger.debug(f"Harness exited with {completed.returncode}: {completed.stderr.strip()}")

        if not self.result_path.exists():
            return HarnessResult(
                status_code=StatusCode.MISSING_OUTCOME.value, duration_ms=elapsed_ms
            )

        try:
            payload = json.loads(self.result_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise HarnessFailure(f"Harness wrote invalid JSON to {self.result_path}: {e}") from e

        result = parse_harness_output(payload)
        if not result.duration_ms:
            result.duration_ms = elapsed_ms
        return result
