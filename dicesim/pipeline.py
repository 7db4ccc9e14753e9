"""
Batch orchestration for decision simulations.

Runs a list of decisions and returns one SimulationResult per decision,
in input order, whichever execution mode is used.
"""

import numpy as np
from concurrent.futures import Future, as_completed
from contextlib import ExitStack
from typing import Dict, List, Optional, Sequence
import logging

from .types import Decision
from .config import MODES, SimulationConfig
from .parallel.pool import default_worker_count, init_pool
from .parallel.worker import WorkerHandle
from .simulation.engine import DEFAULT_BATCH_SIZE, run, validate_iterations
from .stats.histogram import Denominator, SimulationResult, summarize

logger = logging.getLogger(__name__)


def simulate(
    decision: Decision,
    iterations: int,
    denominator: Denominator = "iterations",
    **run_kwargs
) -> SimulationResult:
    """Run one decision and summarize its histogram."""
    counts = run(decision, iterations, **run_kwargs)
    return summarize(counts, iterations, denominator)


def run_decisions(
    decisions: Sequence[Decision],
    iterations: int,
    mode: str = "threads",
    worker_threads: Optional[int] = None,
    max_workers: int = 2,
    denominator: Denominator = "iterations",
    batch_size: int = DEFAULT_BATCH_SIZE,
    ready_timeout: Optional[float] = None
) -> List[SimulationResult]:
    """
    Simulate a batch of decisions.

    Modes:
    - serial:  every run on the calling thread
    - threads: runs one after another, each sharded over the process-wide
               sampling pool (initialized here if needed)
    - worker:  runs dispatched concurrently to up to ``max_workers`` worker
               processes, each with its own sampling pool

    Args:
        decisions: Decisions to simulate
        iterations: Monte Carlo iterations per decision
        mode: "serial", "threads" or "worker"
        worker_threads: Sampling threads (per process in worker mode)
        max_workers: Worker processes for worker mode
        denominator: Normalization used for the returned probabilities
        batch_size: Iterations per vectorized batch
        ready_timeout: Seconds to wait for the sampling pool in threads mode

    Returns:
        results[i] is the result for decisions[i]
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode {mode!r}; expected one of {MODES}")
    iterations = validate_iterations(iterations)

    decisions = list(decisions)
    logger.info(f"Running {len(decisions)} decision(s), {iterations} iterations each, mode={mode}")

    if mode == "worker":
        counts = _run_in_workers(decisions, iterations, worker_threads, max_workers, batch_size)
    else:
        parallel = mode == "threads"
        if parallel:
            init_pool(worker_threads)
        counts = [
            run(d, iterations, parallel=parallel, ready_timeout=ready_timeout, batch_size=batch_size)
            for d in decisions
        ]

    return [summarize(c, iterations, denominator) for c in counts]


def run_from_config(
    decisions: Sequence[Decision],
    config: SimulationConfig,
    ready_timeout: Optional[float] = None
) -> List[SimulationResult]:
    """run_decisions() with every setting taken from a SimulationConfig."""
    return run_decisions(
        decisions,
        iterations=config.iterations,
        mode=config.mode,
        worker_threads=config.worker_threads,
        max_workers=config.max_workers,
        denominator=config.denominator,
        batch_size=config.batch_size,
        ready_timeout=ready_timeout,
    )


def _run_in_workers(
    decisions: List[Decision],
    iterations: int,
    worker_threads: Optional[int],
    max_workers: int,
    batch_size: int
) -> List[np.ndarray]:
    """
    Dispatch runs round-robin over worker processes.

    Results are keyed by decision index, not by completion order. Every
    acquired worker is released on the way out, errors included.
    """
    if not decisions:
        return []
    if max_workers < 1:
        raise ValueError(f"max_workers must be positive, got {max_workers}")

    n_workers = min(max_workers, len(decisions))
    if worker_threads is None:
        # Split the host between worker processes instead of oversubscribing it
        worker_threads = max(1, default_worker_count() // n_workers)

    results: List[Optional[np.ndarray]] = [None] * len(decisions)
    with ExitStack() as stack:
        workers = [
            stack.enter_context(WorkerHandle.acquire(worker_threads, batch_size))
            for _ in range(n_workers)
        ]
        futures: Dict[Future, int] = {}
        for i, decision in enumerate(decisions):
            futures[workers[i % n_workers].run(decision, iterations)] = i

        for future in as_completed(futures):
            idx = futures[future]
            results[idx] = future.result()
            logger.info(f"Decision {idx + 1}/{len(decisions)} finished: {decisions[idx]}")

    return results
