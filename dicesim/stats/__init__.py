"""Histogram aggregation and summary statistics."""

from .histogram import (
    SimulationResult,
    normalize,
    mean,
    merge_counts,
    summarize,
    Denominator,
)

__all__ = [
    "SimulationResult",
    "normalize",
    "mean",
    "merge_counts",
    "summarize",
    "Denominator",
]
