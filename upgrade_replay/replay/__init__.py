"""Replay session orchestration and the harness contract."""

from .harness import CommandHarness, Harness, parse_harness_output
from .orchestrator import ReplayOrchestrator, ReplaySessionSummary, SessionState

__all__ = [
    "CommandHarness",
    "Harness",
    "parse_harness_output",
    "ReplayOrchestrator",
    "ReplaySessionSummary",
    "SessionState",
]
