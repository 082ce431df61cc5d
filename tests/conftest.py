"""Shared fixtures: synthetic captures shaped like explorer txlist output."""

import json

import pytest

from upgrade_replay.config.settings import ReplayConfig
from upgrade_replay.domain.transaction import RawTransaction


def make_tx(index, function_name="transfer(address,uint256)", is_error="0"):
    """Build one explorer-shaped transaction dict."""
    return {
        "blockNumber": str(20000000 - index),
        "hash": f"0x{index:064x}",
        "functionName": function_name,
        "input": f"0xa9059cbb{index:08x}",
        "value": "0",
        "isError": is_error,
        "from": "0x00000000000000000000000000000000000000aa",
        "to": "0x00000000000000000000000000000000000000bb",
    }


@pytest.fixture
def tx_factory():
    """Factory for explorer-shaped transaction dicts."""
    return make_tx


@pytest.fixture
def capture_entries():
    """
    Ten transactions, most recent first; entries 1, 4 and 8 reverted.

    Valid indices: 0, 2, 3, 5, 6, 7, 9.
    """
    functions = [
        "transfer(address,uint256)",
        "approve(address,uint256)",
        "transfer(address,uint256)",
        "mint(address,uint256)",
        "approve(address,uint256)",
        "approve(address,uint256)",
        "transfer(address,uint256)",
        "burn(uint256)",
        "mint(address,uint256)",
        "transfer(address,uint256)",
    ]
    reverted = {1, 4, 8}
    return [
        make_tx(i, function_name=name, is_error="1" if i in reverted else "0")
        for i, name in enumerate(functions)
    ]


@pytest.fixture
def capture_file(tmp_path, capture_entries):
    """Capture file holding capture_entries."""
    path = tmp_path / "transactions" / "transactions.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(capture_entries), encoding="utf-8")
    return path


@pytest.fixture
def window(capture_entries):
    """capture_entries loaded as RawTransaction objects."""
    return tuple(RawTransaction.from_dict(entry) for entry in capture_entries)


@pytest.fixture
def replay_config(tmp_path, capture_file):
    """Complete configuration rooted in tmp_path."""
    return ReplayConfig(
        reports_dir=str(tmp_path / "reports"),
        transactions_path=str(capture_file),
        samples_dir=str(tmp_path / "samples"),
        deployed_sources_dir=str(tmp_path / "contracts" / "deployed"),
        upgraded_sources_dir=str(tmp_path / "contracts"),
        proxy_path="contracts/Proxy.sol",
        upgraded_logic_path="contracts/TokenV2.sol",
        deployed_proxy_address="0x00000000000000000000000000000000000000bb",
        deployed_logic_address="0x00000000000000000000000000000000000000cc",
        harness_command=("npx", "hardhat", "test"),
        sampling_seed=1234,
        clean_dirs=(str(tmp_path / "artifacts"), str(tmp_path / "cache")),
    )
