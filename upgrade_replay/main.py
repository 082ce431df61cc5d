"""
Command-line entry point for upgrade replay testing.

Usage:
    upgrade-replay clean
    upgrade-replay capture <nTx> [startBlock]
    upgrade-replay getLast|getRandom|getUnique|getFrequency <nTx> [txPath]
    upgrade-replay replay <strategy>

Every command exits 0 on success and 1 on a usage, configuration or
validation error.
"""

import argparse
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from upgrade_replay.config.settings import ReplayConfig, load_config
from upgrade_replay.exceptions import ReplayToolError
from upgrade_replay.explorer.client import ExplorerClient
from upgrade_replay.replay.harness import CommandHarness
from upgrade_replay.replay.orchestrator import ReplayOrchestrator
from upgrade_replay.sampling.engine import SamplingEngine
from upgrade_replay.store import transaction_store
from upgrade_replay.utils.logger import get_logger

logger = get_logger(__name__)

SAMPLE_COMMANDS = {
    "getLast": ("last", "build a sample of the last nTx transactions"),
    "getRandom": ("random", "build a sample of random nTx transactions"),
    "getUnique": ("unique", "build a sample of nTx transactions for each unique method"),
    "getFrequency": (
        "frequency",
        "build a sample of nTx transactions proportional to method frequency",
    ),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="upgrade-replay",
        description="Replay captured transactions against an upgraded contract",
    )
    parser.add_argument("--config", help="path to the YAML configuration file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("clean", help="clean the testing environment")

    replay = subparsers.add_parser(
        "replay", help="replay the available transactions according to a strategy"
    )
    replay.add_argument(
        "strategy",
        help="transaction hash (0x...), all, last, random, unique or frequency",
    )

    capture = subparsers.add_parser(
        "capture", help="capture nTx successful proxy transactions into the capture file"
    )
    capture.add_argument("nTx", type=int, help="the number of transactions to be extracted")
    capture.add_argument(
        "startBlock", type=int, nargs="?", default=1, help="the first block to scan"
    )

    for command, (_, help_text) in SAMPLE_COMMANDS.items():
        sample = subparsers.add_parser(command, help=help_text)
        sample.add_argument("nTx", type=int, help="the number of transactions to be extracted")
        sample.add_argument(
            "txPath",
            nargs="?",
            default=None,
            help="capture file to sample from (defaults to the configured capture)",
        )

    return parser


def clean_environment(config: ReplayConfig) -> None:
    """Empty build/cache directories and delete fetched deployed sources."""
    for dir_name in config.clean_dirs:
        directory = Path(dir_name)
        if directory.exists():
            for child in directory.iterdir():
                if child.is_dir():
                    shutil.rmtree(child)
                else:
                    child.unlink()
            logger.info(f"Cleaning directory {directory}", operation="clean")

    deployed = Path(config.deployed_sources_dir)
    if deployed.exists():
        shutil.rmtree(deployed)
        logger.info(f"Deleting directory {deployed}", operation="clean")


def run_sample(config: ReplayConfig, strategy: str, n: int, tx_path: Optional[str]) -> int:
    window = transaction_store.load(tx_path or config.transactions_path)
    engine = SamplingEngine(config.samples_dir, seed=config.sampling_seed)
    sample = engine.build(strategy, n, window)
    print(f"Sample saved as {sample.path.name}")
    return 0


def run_replay(config: ReplayConfig, strategy: str) -> int:
    orchestrator = ReplayOrchestrator(config, CommandHarness.from_config(config))
    # Fail on incomplete configuration before touching capture files
    config.require_complete()
    transactions = orchestrator.resolve_transactions(strategy)
    summary = orchestrator.run(transactions)
    print(f"> Done: {summary.passed}/{summary.total} transactions unchanged")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)

        if args.command == "clean":
            clean_environment(config)
            return 0
        if args.command == "capture":
            ExplorerClient.from_config(config).capture(config, args.nTx, args.startBlock)
            return 0
        if args.command == "replay":
            return run_replay(config, args.strategy)

        strategy, _ = SAMPLE_COMMANDS[args.command]
        return run_sample(config, strategy, args.nTx, args.txPath)

    except ReplayToolError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
