"""Transaction sampling strategies."""

from .engine import (
    STRATEGIES,
    Sample,
    SamplingEngine,
    allocate_by_frequency,
    sample_file_name,
)

__all__ = [
    "STRATEGIES",
    "Sample",
    "SamplingEngine",
    "allocate_by_frequency",
    "sample_file_name",
]
