"""
Process-wide sampling thread pool.

One pool per process, initialized asynchronously:

    uninitialized --init_pool()--> initializing --(threads started)--> ready

``init_pool`` returns a future; any run that wants the pool waits on that
future (``wait_for_pool``) instead of assuming initialization already
happened. ``shutdown_pool`` returns the process to ``uninitialized``.
"""

import os
import threading
import logging
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from enum import Enum
from time import perf_counter
from typing import Callable, Optional

from ..errors import PoolNotReady

logger = logging.getLogger(__name__)

# Seconds a warm-up task waits for its siblings before giving up
WARMUP_TIMEOUT = 30.0


class PoolState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


def default_worker_count() -> int:
    """Available hardware parallelism on this host."""
    # affinity and cgroup cpusets narrow what this process may actually use
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


class SamplingPool:
    """
    Fixed-size set of sampling threads.

    Attributes:
        worker_count: Number of threads; runs are split into this many shards
    """

    def __init__(self, worker_count: int):
        if worker_count < 1:
            raise ValueError(f"Sampling pool needs at least one worker, got {worker_count}")
        self.worker_count = worker_count
        self._executor = ThreadPoolExecutor(
            max_workers=worker_count,
            thread_name_prefix="dicesim-sampler",
        )

    def warm_up(self) -> None:
        """
        Start every worker thread up front.

        ThreadPoolExecutor spawns threads lazily; holding ``worker_count``
        tasks on a barrier forces all of them to exist before the pool is
        reported ready.
        """
        barrier = threading.Barrier(self.worker_count)
        futures = [
            self._executor.submit(barrier.wait, WARMUP_TIMEOUT)
            for _ in range(self.worker_count)
        ]
        for future in futures:
            future.result()

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_lock = threading.Lock()
_ready: Optional[Future] = None
_pool: Optional[SamplingPool] = None


def _build_pool(worker_count: int) -> SamplingPool:
    start = perf_counter()
    pool = SamplingPool(worker_count)
    pool.warm_up()
    logger.info(
        "Sampling pool ready: %d threads in %.3fs", worker_count, perf_counter() - start
    )
    return pool


def _on_pool_built(future: Future) -> None:
    global _ready, _pool
    with _lock:
        current = future is _ready
        if current:
            if future.exception() is None:
                _pool = future.result()
            else:
                # A failed initialization leaves the process uninitialized so init can be retried
                _ready = None
    if not current and future.exception() is None:
        # shutdown_pool() ran while this pool was still starting
        future.result().shutdown(wait=False)


def init_pool(worker_count: Optional[int] = None) -> Future:
    """
    Start initializing the process-wide sampling pool.

    Idempotent: while a pool is initializing or ready, later calls return the
    same future and ``worker_count`` is ignored.

    Args:
        worker_count: Number of sampling threads (default: os.cpu_count())

    Returns:
        Future resolving to the ready SamplingPool
    """
    global _ready
    with _lock:
        if _ready is not None:
            if worker_count is not None and _pool is not None and _pool.worker_count != worker_count:
                logger.warning(
                    "Sampling pool already has %d threads; ignoring request for %d",
                    _pool.worker_count, worker_count
                )
            return _ready

        count = default_worker_count() if worker_count is None else int(worker_count)
        if count < 1:
            raise ValueError(f"worker_count must be a positive integer, got {worker_count}")

        logger.info("Initializing sampling pool with %d threads", count)
        init_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dicesim-pool-init")
        ready = init_executor.submit(_build_pool, count)
        init_executor.shutdown(wait=False)
        _ready = ready

    ready.add_done_callback(_on_pool_built)
    return ready


def pool_state() -> PoolState:
    """Current lifecycle state of the process-wide pool."""
    with _lock:
        if _ready is None:
            return PoolState.UNINITIALIZED
        if not _ready.done():
            return PoolState.INITIALIZING
        if _ready.exception() is not None:
            return PoolState.UNINITIALIZED
        return PoolState.READY


def wait_for_pool(timeout: Optional[float] = None) -> SamplingPool:
    """
    Block until the pool is ready and return it.

    Args:
        timeout: Seconds to wait while the pool is initializing (None = forever)

    Raises:
        PoolNotReady: If init_pool() was never called, the wait timed out,
                      initialization failed,
                      or the pool was shut down while waiting
    """
    with _lock:
        ready = _ready
    if ready is None:
        raise PoolNotReady("Sampling pool is not initialized; call init_pool() first")

    try:
        pool = ready.result(timeout=timeout)
    except FutureTimeoutError:
        raise PoolNotReady(f"Sampling pool still initializing after {timeout}s") from None
    except Exception as exc:
        raise PoolNotReady(f"Sampling pool failed to initialize: {exc}") from exc

    with _lock:
        if ready is not _ready:
            raise PoolNotReady("Sampling pool was shut down")
    return pool


def is_initialized() -> bool:
    """True once init_pool() has been called (pool initializing or ready)."""
    with _lock:
        return _ready is not None


def shutdown_pool(wait: bool = True) -> None:
    """Tear down the process-wide pool; a later init_pool() starts a new one."""
    global _ready, _pool
    with _lock:
        pool = _pool
        _ready = None
        _pool = None
    if pool is not None:
        logger.info("Shutting down sampling pool (%d threads)", pool.worker_count)
        pool.shutdown(wait=wait)
