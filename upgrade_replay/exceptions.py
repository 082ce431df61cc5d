"""
Custom exception hierarchy for replay testing.

Configuration and load errors abort a command. Harness errors are caught per
transaction by the orchestrator and recorded as a status code instead.
"""


class ReplayToolError(Exception):
    """
    Base exception for all replay-tool errors.

    The CLI turns any subclass into an error message and a non-zero exit code.
    """

    pass


class ConfigurationError(ReplayToolError):
    """Raised when the configuration file cannot be read or fails schema validation."""

    pass


class ConfigIncomplete(ConfigurationError):
    """
    Raised during replay setup when required configuration values are missing.

    Attributes:
        missing: Names of the keys that are empty or absent
    """

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Replay configuration incomplete. Missing: {', '.join(self.missing)}")


class NotFound(ReplayToolError):
    """Base class for missing files or records."""

    pass


class TransactionFileNotFound(NotFound):
    """Raised when a capture or sample file does not exist."""

    pass


class SampleNotFound(TransactionFileNotFound):
    """Raised when a replay strategy refers to a sample that was never built."""

    pass


class TransactionNotFound(NotFound):
    """Raised when a hash does not correspond to a valid (non-reverted) transaction."""

    pass


class TransactionParseError(ReplayToolError):
    """Raised when a capture file is not a JSON list of transaction objects."""

    pass


class InvalidCount(ReplayToolError):
    """Raised when the requested sample size is <= 0 or larger than the window."""

    pass


class InsufficientValid(ReplayToolError):
    """Raised when the window has fewer valid transactions than requested."""

    pass


class InvalidStrategy(ReplayToolError):
    """Raised for an unrecognized replay or sampling strategy name."""

    pass


class HarnessFailure(ReplayToolError):
    """
    Raised by a harness when a single transaction could not be replayed.

    Never fatal to a session: the orchestrator records it as a status code.
    """

    pass


class LedgerWriteFailure(ReplayToolError):
    """Raised when a ledger target does not exist at append time."""

    pass


class ExplorerError(ReplayToolError):
    """Raised when the block explorer API returns an error or an unusable payload."""

    pass
