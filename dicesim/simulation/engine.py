"""
Monte Carlo simulation driver for decisions.

Each iteration rolls the decision dice, compares the roll against the
threshold, and on success rolls the payoff dice and counts the result.
Iterations are processed in vectorized batches and, when the process-wide
sampling pool is available, split into one shard per pool thread.
"""

import numpy as np
from functools import partial
from time import perf_counter
from typing import Callable, List, Optional, Sequence
import logging

from ..types import Decision, DiceExpression, always
from ..parallel.pool import SamplingPool, is_initialized, wait_for_pool
from ..stats.histogram import merge_counts
from .sampling import sample_many

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 65_536

ShardFn = Callable[[int, np.random.Generator], np.ndarray]


def validate_iterations(iterations: int) -> int:
    """
    Check an iteration count and return it as an int.

    Raises:
        ValueError: If iterations is negative or not a whole number
    """
    if isinstance(iterations, bool) or int(iterations) != iterations:
        raise ValueError(f"iterations must be an integer, got {iterations!r}")
    iterations = int(iterations)
    if iterations < 0:
        raise ValueError(f"iterations must be non-negative, got {iterations}")
    return iterations


def _batches(iterations: int, batch_size: int):
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    remaining = iterations
    while remaining > 0:
        n = min(batch_size, remaining)
        yield n
        remaining -= n


def run_shard(
    decision: Decision,
    iterations: int,
    rng: Optional[np.random.Generator] = None,
    batch_size: int = DEFAULT_BATCH_SIZE
) -> np.ndarray:
    """
    Single-threaded simulation of ``iterations`` decision trials.

    Args:
        decision: Decision to simulate
        iterations: Number of trials
        rng: Optional Generator for this shard
        batch_size: Trials rolled per vectorized batch

    Returns:
        counts: [decision.max_value + 1] int64 raw counts
    """
    if rng is None:
        rng = np.random.default_rng()

    counts = np.zeros(decision.max_value + 1, dtype=np.int64)
    for n in _batches(iterations, batch_size):
        gate = sample_many(decision.decision_dice, n, rng)
        hits = int(np.count_nonzero(decision.comparator.apply(gate, decision.threshold)))
        if hits == 0:
            continue
        payoff = sample_many(decision.dice, hits, rng)
        counts += np.bincount(payoff, minlength=len(counts))
    return counts


def run_decision_set_shard(
    decisions: Sequence[Decision],
    iterations: int,
    rng: Optional[np.random.Generator] = None,
    batch_size: int = DEFAULT_BATCH_SIZE
) -> np.ndarray:
    """
    Single-threaded simulation of the sum of several decisions.

    Every iteration rolls each decision; a decision that does not trigger
    contributes 0 and the total is always recorded.

    Returns:
        counts: [sum(d.max_value) + 1] int64 raw counts
    """
    if rng is None:
        rng = np.random.default_rng()

    length = sum(d.max_value for d in decisions) + 1
    counts = np.zeros(length, dtype=np.int64)
    for n in _batches(iterations, batch_size):
        totals = np.zeros(n, dtype=np.int64)
        for decision in decisions:
            gate = sample_many(decision.decision_dice, n, rng)
            mask = decision.comparator.apply(gate, decision.threshold)
            hits = int(np.count_nonzero(mask))
            if hits:
                totals[mask] += sample_many(decision.dice, hits, rng)
        counts += np.bincount(totals, minlength=length)
    return counts


def _shard_sizes(iterations: int, n_shards: int) -> List[int]:
    base, extra = divmod(iterations, n_shards)
    return [base + (1 if i < extra else 0) for i in range(n_shards) if base or i < extra]


def _run_sharded(
    shard_fn: ShardFn,
    iterations: int,
    pool: SamplingPool,
    seed: Optional[int] = None
) -> np.ndarray:
    """
    Split iterations across the pool, one independent stream per shard.

    Shard counts are summed; per-shard histograms all have the same length.
    """
    sizes = _shard_sizes(iterations, pool.worker_count)
    streams = np.random.SeedSequence(seed).spawn(len(sizes))
    futures = [
        pool.submit(shard_fn, size, np.random.default_rng(stream))
        for size, stream in zip(sizes, streams)
    ]
    parts = []
    for i, future in enumerate(futures):
        parts.append(future.result())
        logger.debug("Shard %d/%d done (%d iterations)", i + 1, len(futures), sizes[i])
    return merge_counts(parts)


def _resolve_pool(parallel: Optional[bool], ready_timeout: Optional[float]) -> Optional[SamplingPool]:
    """
    parallel=None uses the pool when init_pool() has been called,
    parallel=True requires it, parallel=False never uses it.
    """
    if parallel is False:
        return None
    if parallel is None and not is_initialized():
        return None
    return wait_for_pool(ready_timeout)


def _execute(
    label: str,
    shard_fn: ShardFn,
    iterations: int,
    length: int,
    parallel: Optional[bool],
    ready_timeout: Optional[float],
    seed: Optional[int]
) -> np.ndarray:
    pool = _resolve_pool(parallel, ready_timeout)
    start = perf_counter()

    if iterations == 0:
        counts = np.zeros(length, dtype=np.int64)
        n_shards = 0
    elif pool is None:
        counts = shard_fn(iterations, np.random.default_rng(seed))
        n_shards = 1
    else:
        counts = _run_sharded(shard_fn, iterations, pool, seed)
        n_shards = min(pool.worker_count, iterations)

    logger.info(
        "Simulated %s: %d iterations, %d shard(s), %d hits in %.3fs",
        label, iterations, n_shards, int(counts.sum()), perf_counter() - start
    )
    return counts


def run(
    decision: Decision,
    iterations: int,
    parallel: Optional[bool] = None,
    ready_timeout: Optional[float] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    seed: Optional[int] = None
) -> np.ndarray:
    """
    Simulate a decision and return raw outcome counts.

    Args:
        decision: Decision to simulate
        iterations: Number of Monte Carlo iterations (0 gives all zeros)
        parallel: None = use the sampling pool if init_pool() was called,
                  True = require the pool, False = run on the calling thread
        ready_timeout: Seconds to wait for an initializing pool (None = forever)
        batch_size: Iterations rolled per vectorized batch
        seed: Optional entropy for the generators; no reproducibility is promised

    Returns:
        counts: [decision.max_value + 1] int64, counts[v] = iterations that
                triggered and rolled v

    Raises:
        ValueError: If iterations is negative or not an integer
        PoolNotReady: If parallel=True and the pool is not initialized
    """
    iterations = validate_iterations(iterations)
    shard_fn = partial(run_shard, decision, batch_size=batch_size)
    return _execute(
        str(decision), shard_fn, iterations, decision.max_value + 1,
        parallel, ready_timeout, seed
    )


def run_decision_set(
    decisions: Sequence[Decision],
    iterations: int,
    parallel: Optional[bool] = None,
    ready_timeout: Optional[float] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    seed: Optional[int] = None
) -> np.ndarray:
    """
    Simulate the summed outcome of several decisions rolled together.

    Returns:
        counts: [sum(d.max_value) + 1] int64; sums to ``iterations``
    """
    iterations = validate_iterations(iterations)
    decisions = tuple(decisions)
    shard_fn = partial(run_decision_set_shard, decisions, batch_size=batch_size)
    label = " + ".join(f"({d})" for d in decisions) or "<empty decision set>"
    return _execute(
        label, shard_fn, iterations, sum(d.max_value for d in decisions) + 1,
        parallel, ready_timeout, seed
    )


def run_expression(
    expression: DiceExpression,
    iterations: int,
    **kwargs
) -> np.ndarray:
    """Histogram of a bare dice expression (every iteration is recorded)."""
    return run(always(expression), iterations, **kwargs)

