"""
Parallel execution.

``pool`` holds the process-wide sampling thread pool used inside a run;
``worker`` (imported separately, it depends on the simulation engine)
offloads whole runs to a worker process.
"""

from .pool import (
    PoolState,
    SamplingPool,
    init_pool,
    is_initialized,
    pool_state,
    wait_for_pool,
    shutdown_pool,
    default_worker_count,
)

__all__ = [
    "PoolState",
    "SamplingPool",
    "init_pool",
    "is_initialized",
    "pool_state",
    "wait_for_pool",
    "shutdown_pool",
    "default_worker_count",
]
