"""
Offloading whole simulation runs to an isolated worker process.

A WorkerHandle owns one spawned process. ``handle.run`` sends the decision
across the process boundary as a plain tuple (comparator as its integer
code) and returns a future for the raw counts. The handle must be released
exactly once; release is idempotent and also happens on ``with`` exit.

    with WorkerHandle.acquire() as worker:
        counts = worker.run(decision, 1_000_000).result()
"""

import multiprocessing
import threading
import logging
from concurrent.futures import Future, ProcessPoolExecutor
from typing import Optional

from ..errors import ResourceAlreadyReleased
from ..types import Decision, DecisionPayload
from ..simulation.engine import DEFAULT_BATCH_SIZE, run, validate_iterations
from .pool import init_pool

logger = logging.getLogger(__name__)

# Fresh interpreter per worker: nothing (pool state included) is inherited from the caller
START_METHOD = "spawn"


def _worker_initializer(worker_threads: Optional[int]) -> None:
    """Runs once inside the worker process; 0 threads disables the sampling pool."""
    if worker_threads != 0:
        init_pool(worker_threads)


def _run_payload(payload: DecisionPayload, iterations: int, batch_size: int):
    decision = Decision.from_payload(payload)
    return run(decision, iterations, batch_size=batch_size)


class WorkerHandle:
    """
    Proxy for a single worker process that runs simulations.

    Attributes:
        worker_threads: Sampling threads inside the worker (None = its CPU count)
        batch_size: Batch size forwarded to every run
    """

    def __init__(
        self,
        executor: ProcessPoolExecutor,
        worker_threads: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE
    ):
        self._executor: Optional[ProcessPoolExecutor] = executor
        self._lock = threading.Lock()
        self.worker_threads = worker_threads
        self.batch_size = batch_size

    @classmethod
    def acquire(
        cls,
        worker_threads: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE
    ) -> 'WorkerHandle':
        """
        Start a worker process and return its handle.

        Args:
            worker_threads: Sampling threads inside the worker; None uses the
                            host CPU count, 0 runs serially in the worker
            batch_size: Iterations per vectorized batch
        """
        if worker_threads is not None and worker_threads < 0:
            raise ValueError(f"worker_threads must be non-negative, got {worker_threads}")
        executor = ProcessPoolExecutor(
            max_workers=1,
            mp_context=multiprocessing.get_context(START_METHOD),
            initializer=_worker_initializer,
            initargs=(worker_threads,),
        )
        logger.info(
            "Acquired simulation worker (threads=%s)",
            "auto" if worker_threads is None else worker_threads
        )
        return cls(executor, worker_threads=worker_threads, batch_size=batch_size)

    @property
    def released(self) -> bool:
        with self._lock:
            return self._executor is None

    def run(self, decision: Decision, iterations: int) -> Future:
        """
        Simulate ``decision`` in the worker process.

        Returns:
            Future resolving to the raw counts array. Discarding the future
            does not stop a run that has already started.

        Raises:
            ResourceAlreadyReleased: If the handle was released
            ValueError: If iterations is negative or not a whole number
        """
        iterations = validate_iterations(iterations)
        with self._lock:
            if self._executor is None:
                raise ResourceAlreadyReleased("Worker handle has already been released")
            return self._executor.submit(
                _run_payload, decision.to_payload(), iterations, self.batch_size
            )

    def release(self, wait: bool = True) -> bool:
        """
        Release the handle and terminate the worker process.

        The process is terminated exactly once; later calls log a warning and
        return False. Runs not yet started are cancelled, a run in progress is
        allowed to finish.

        Args:
            wait: Block until the worker process has exited

        Returns:
            True if this call terminated the worker
        """
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is None:
            logger.warning("Worker handle released more than once; ignoring")
            return False

        executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Released simulation worker")
        return True

    def __enter__(self) -> 'WorkerHandle':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else "active"
        return f"WorkerHandle({state}, threads={self.worker_threads})"
