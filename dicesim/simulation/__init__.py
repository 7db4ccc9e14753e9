"""Monte Carlo sampling and simulation."""

from .sampling import sample, sample_many
from .engine import run, run_shard, run_decision_set, run_expression

__all__ = [
    "sample",
    "sample_many",
    "run",
    "run_shard",
    "run_decision_set",
    "run_expression",
]
