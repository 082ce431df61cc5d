"""
Transaction domain model.

Represents one historically captured call to the proxy contract, as returned
by the block explorer's `txlist` endpoint.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

SUCCESS_SENTINEL = "0"

# Capture keys mapped onto RawTransaction attributes
CORE_FIELDS = {
    "hash": "hash",
    "functionName": "function_name",
    "input": "input",
    "value": "value",
    "isError": "is_error",
}


@dataclass(frozen=True)
class RawTransaction:
    """
    Immutable captured transaction.

    Attributes:
        hash: Transaction hash (unique id)
        function_name: Signature of the invoked method, e.g. "transfer(address,uint256)"
        input: ABI-encoded call data
        value: Wei sent with the call, as a decimal string
        is_error: "0" when the transaction succeeded, "1" when it reverted
        extra_fields: Remaining explorer fields (blockNumber, from, to, ...)
    """

    hash: str
    function_name: str
    input: str
    value: str
    is_error: str
    extra_fields: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_valid(self) -> bool:
        """True when the transaction did not revert."""
        return self.is_error == SUCCESS_SENTINEL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawTransaction":
        """
        Create a RawTransaction from one capture-file entry.

        Unknown keys are kept in extra_fields so they survive into sample files.
        """
        core_data = {attr: data[key] for key, attr in CORE_FIELDS.items()}
        extra_data = {k: v for k, v in data.items() if k not in CORE_FIELDS}
        return cls(**core_data, extra_fields=extra_data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the capture-file shape."""
        data: Dict[str, Any] = dict(self.extra_fields)
        for key, attr in CORE_FIELDS.items():
            data[key] = getattr(self, attr)
        return data


TransactionWindow = Tuple[RawTransaction, ...]
