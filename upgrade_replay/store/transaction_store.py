"""
Capture file loading and window validation.

A capture is a JSON list of explorer transaction objects, most recent first.
Sampling strategies and replay both read captures through this module.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import jsonschema

from upgrade_replay.domain.transaction import RawTransaction, TransactionWindow
from upgrade_replay.exceptions import (
    InsufficientValid,
    InvalidCount,
    TransactionFileNotFound,
    TransactionNotFound,
    TransactionParseError,
)

logger = logging.getLogger(__name__)

TRANSACTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["hash", "functionName", "isError", "value", "input"],
    "properties": {
        "hash": {"type": "string", "minLength": 1},
        "functionName": {"type": "string"},
        "isError": {"type": "string", "enum": ["0", "1"]},
        "value": {"type": "string"},
        "input": {"type": "string"},
    },
}

CAPTURE_SCHEMA: Dict[str, Any] = {"type": "array", "items": TRANSACTION_SCHEMA}


def load(path: Union[str, Path]) -> TransactionWindow:
    """
    Load a capture (or sample) file into a TransactionWindow.

    Hash uniqueness is not checked; duplicates are kept in file order.

    Args:
        path: Path to the JSON capture file

    Returns:
        Tuple of RawTransaction in file order

    Raises:
        TransactionFileNotFound: If the file does not exist
        TransactionParseError: If the file is not a JSON list of transaction objects
    """
    capture_path = Path(path)
    if not capture_path.exists():
        raise TransactionFileNotFound(f"{capture_path} does not exist")

    try:
        with capture_path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise TransactionParseError(f"{capture_path} is not valid JSON: {e}") from e

    try:
        jsonschema.validate(instance=raw, schema=CAPTURE_SCHEMA)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise TransactionParseError(
            f"{capture_path} is not a valid capture ({location}): {e.message}"
        ) from e

    window = tuple(RawTransaction.from_dict(entry) for entry in raw)
    logger.debug(f"Loaded {len(window)} transactions from {capture_path}")
    return window


def save(transactions: Iterable[RawTransaction], path: Union[str, Path]) -> Path:
    """Write transactions to a JSON file in capture shape, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload: List[Dict[str, Any]] = [tx.to_dict() for tx in transactions]
    target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return target


def valid_subset(window: TransactionWindow) -> TransactionWindow:
    """Transactions carrying the success sentinel, in window order."""
    return tuple(tx for tx in window if tx.is_valid)


def validate_window(n: int, window: TransactionWindow) -> TransactionWindow:
    """
    Check that a sample of size n can be drawn and return the valid subset.

    Every sampling strategy calls this before selecting anything.

    Args:
        n: Requested sample size (per method for the unique strategy)
        window: Loaded capture

    Returns:
        The non-reverted transactions, in window order

    Raises:
        InvalidCount: If n <= 0 or n exceeds the window length
        InsufficientValid: If n exceeds the number of valid transactions
    """
    if n <= 0 or n > len(window):
        raise InvalidCount(
            f"Please specify a valid number of transactions - {n} is not valid "
            f"(window holds {len(window)})"
        )

    valid = valid_subset(window)
    if n > len(valid):
        raise InsufficientValid(
            f"Not enough valid transactions to create the sample - "
            f"({n} required, {len(valid)} available)"
        )

    return valid


def get_transaction(tx_hash: str, window: TransactionWindow) -> RawTransaction:
    """
    Find a single valid transaction by hash.

    Raises:
        TransactionNotFound: If no entry has that hash or the first match reverted
    """
    match = next((tx for tx in window if tx.hash == tx_hash), None)
    if match is None or not match.is_valid:
        raise TransactionNotFound(
            f'Hash "{tx_hash}" does not correspond to a valid transaction.'
        )
    return match
