"""
Dice decision simulator.

Parses dice notation, composes conditional decision rolls, and estimates
their outcome distributions by Monte Carlo simulation.
"""

from .errors import DiceSimError, InvalidNotation, PoolNotReady, ResourceAlreadyReleased
from .types import Comparator, DiceTerm, DiceExpression, Decision, always
from .notation import parse, longest_valid_prefix, sanitize, format_expression, parse_comparator
from .stats import SimulationResult, normalize, mean, summarize
from .simulation import sample, sample_many, run, run_decision_set, run_expression
from .parallel import init_pool, shutdown_pool, pool_state, wait_for_pool, PoolState
from .parallel.worker import WorkerHandle
from .pipeline import simulate, run_decisions

__all__ = [
    "DiceSimError",
    "InvalidNotation",
    "PoolNotReady",
    "ResourceAlreadyReleased",
    "Comparator",
    "DiceTerm",
    "DiceExpression",
    "Decision",
    "always",
    "parse",
    "longest_valid_prefix",
    "sanitize",
    "format_expression",
    "parse_comparator",
    "SimulationResult",
    "normalize",
    "mean",
    "summarize",
    "sample",
    "sample_many",
    "run",
    "run_decision_set",
    "run_expression",
    "init_pool",
    "shutdown_pool",
    "pool_state",
    "wait_for_pool",
    "PoolState",
    "WorkerHandle",
    "simulate",
    "run_decisions",
]
