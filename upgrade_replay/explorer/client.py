"""
Block Explorer API Client

Fetches the transaction history of the proxy contract from an
Etherscan-compatible `account/txlist` endpoint and writes the capture file
that the samplers and `replay all` read.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from upgrade_replay.config.settings import ReplayConfig
from upgrade_replay.domain.transaction import RawTransaction
from upgrade_replay.exceptions import ExplorerError, InvalidCount
from upgrade_replay.store import transaction_store
from upgrade_replay.utils.logger import get_logger, log_operation

logger = get_logger(__name__)


class ExplorerClient:
    """
    Client for the explorer's account transaction list.

    Only the first page is requested; the explorer caps it at PAGE_SIZE entries.
    """

    PAGE_SIZE = 10000
    TIMEOUT_SECONDS = 30

    def __init__(
        self,
        api_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize explorer client.

        Args:
            api_url: Explorer API endpoint, e.g. https://api.etherscan.io/api
            api_key: Explorer API key
            session: Optional requests.Session (injected in tests)
        """
        self.api_url = api_url
        self.api_key = api_key
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: ReplayConfig) -> "ExplorerClient":
        return cls(api_url=config.explorer_api_url, api_key=config.explorer_api_key)

    def get_transactions(
        self, address: str, start_block: int = 1, end_block: int = 99999999
    ) -> List[Dict[str, Any]]:
        """
        Fetch transactions sent to an address, most recent first.

        Raises:
            ExplorerError: On HTTP failure or an error payload from the explorer
        """
        params = {
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": start_block,
            "endblock": end_block,
            "page": 1,
            "offset": self.PAGE_SIZE,
            "sort": "desc",
            "apikey": self.api_key,
        }

        try:
            response = self.session.get(self.api_url, params=params, timeout=self.TIMEOUT_SECONDS)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise ExplorerError(f"Explorer request failed: {e}") from e
        except ValueError as e:
            raise ExplorerError(f"Explorer returned a non-JSON response: {e}") from e

        result = payload.get("result")
        if payload.get("status") == "1" and isinstance(result, list):
            return result
        # Etherscan answers status "0" with an empty list when nothing matched
        if payload.get("message") == "No transactions found":
            return []
        raise ExplorerError(f"Explorer error: {payload.get('message')} ({result})")

    @log_operation("capture_transactions")
    def capture(
        self,
        config: ReplayConfig,
        size: int,
        start_block: int = 1,
    ) -> List[RawTransaction]:
        """
        Save up to `size` successful proxy transactions to the capture file.

        Args:
            config: Replay configuration (proxy address, capture path, end block)
            size: Maximum number of transactions to keep
            start_block: First block to consider

        Returns:
            The captured transactions, most recent first
        """
        if size <= 0:
            raise InvalidCount(f"Please specify a valid number of transactions - {size} is not valid")

        raw = self.get_transactions(
            config.deployed_proxy_address, start_block, config.explorer_end_block
        )
        captured = [
            RawTransaction.from_dict(tx) for tx in raw if tx.get("isError") == "0"
        ][:size]

        if len(captured) < size:
            logger.warning(
                f"The proxy features {len(captured)} valid transactions",
                operation="capture_transactions",
                context={"requested": size, "available": len(captured)},
            )

        path = transaction_store.save(captured, Path(config.transactions_path))
        logger.info(f"Transactions saved to {path}", operation="capture_transactions")
        return captured
