"""Capture file store."""

from .transaction_store import (
    get_transaction,
    load,
    save,
    valid_subset,
    validate_window,
)

__all__ = [
    "get_transaction",
    "load",
    "save",
    "valid_subset",
    "validate_window",
]
