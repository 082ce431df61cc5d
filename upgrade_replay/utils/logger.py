"""
Structured logging for the replay tool.

Every record is one JSON object per line. Replay-specific context (the
transaction being replayed, the sample size, the strategy) is attached under
"context" so a session log can be filtered with jq or grep.
"""

import inspect
import json
import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional


def short_hash(tx_hash: Optional[str], keep: int = 10) -> str:
    """
    Shorten a transaction hash for log context.

    Keeps the first `keep` characters and the last four:
        >>> short_hash("0x" + "ab" * 32)
        '0xabababab…abab'
    """
    if not tx_hash:
        return "unknown"
    if len(tx_hash) <= keep + 4:
        return tx_hash
    return f"{tx_hash[:keep]}…{tx_hash[-4:]}"


def _plain(value: Any) -> Any:
    return value


def _transaction_hash(transaction: Any) -> str:
    return short_hash(getattr(transaction, "hash", None))


# Call arguments copied into the log context, and how each one is rendered
CONTEXT_ARGUMENTS: Dict[str, Callable[[Any], Any]] = {
    "n": _plain,
    "size": _plain,
    "start_block": _plain,
    "strategy": str,
    "tx_hash": short_hash,
    "transaction": _transaction_hash,
}


class StructuredLogger:
    """Thin wrapper over a stdlib logger that renders each record as JSON."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(handler)

    @staticmethod
    def format_entry(
        level: str,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> str:
        """
        Render one log record.

        Always carries timestamp (UTC, "Z" suffix), level and message. The
        optional fields appear only when set; duration is rounded to 0.01 ms.
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "message": message,
        }
        optional = {
            "operation": operation,
            "context": context or None,
            "duration_ms": None if duration_ms is None else round(duration_ms, 2),
            "error": error or None,
        }
        entry.update({key: value for key, value in optional.items() if value is not None})
        return json.dumps(entry, ensure_ascii=False, default=str)

    def log(self, level: int, message: str, **fields: Any) -> None:
        if self.logger.isEnabledFor(level):
            entry = self.format_entry(logging.getLevelName(level), message, **fields)
            self.logger.log(level, entry)

    def debug(self, message: str, **fields: Any) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log(logging.ERROR, message, **fields)


def call_context(signature: inspect.Signature, args: tuple, kwargs: dict) -> Dict[str, Any]:
    """Pick the CONTEXT_ARGUMENTS out of a call, whether passed by position or keyword."""
    try:
        bound = signature.bind_partial(*args, **kwargs)
    except TypeError:
        return {}
    context = {}
    for name, value in bound.arguments.items():
        if name in CONTEXT_ARGUMENTS and value is not None:
            context[name] = CONTEXT_ARGUMENTS[name](value)
    return context


def log_operation(operation_name: str):
    """
    Log the start, completion or failure of a call, with its duration.

    Arguments named in CONTEXT_ARGUMENTS are added to the record's context:

        @log_operation("sample_last")
        def last_n(self, n, window):
            ...

    logs {"context": {"function": "SamplingEngine.last_n", "n": 5}, ...}.
    Exceptions are logged and re-raised unchanged.
    """

    def decorator(func):
        signature = inspect.signature(func)
        logger = StructuredLogger(func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            context = {"function": func.__qualname__}
            context.update(call_context(signature, args, kwargs))
            logger.debug(f"Starting {operation_name}", operation=operation_name, context=context)

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}",
                    operation=operation_name,
                    context=context,
                    error=f"{type(e).__name__}: {e}",
                    duration_ms=(time.perf_counter() - start) * 1000,
                )
                raise
            logger.info(
                f"Completed {operation_name}",
                operation=operation_name,
                context=context,
                duration_ms=(time.perf_counter() - start) * 1000,
            )
            return result

        return wrapper

    return decorator


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
