"""Block explorer client used to capture transaction history."""

from .client import ExplorerClient

__all__ = ["ExplorerClient"]
