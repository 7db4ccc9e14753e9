import os
import threading
import time

import pytest

from dicesim.errors import PoolNotReady
from dicesim.parallel import pool as pool_module
from dicesim.parallel import (
    PoolState,
    SamplingPool,
    default_worker_count,
    init_pool,
    is_initialized,
    pool_state,
    shutdown_pool,
    wait_for_pool,
)


@pytest.fixture
def slow_build(monkeypatch):
    """Make pool initialization block until the returned event is set."""
    release = threading.Event()

    def build(worker_count):
        release.wait(10)
        return SamplingPool(worker_count)

    monkeypatch.setattr(pool_module, "_build_pool", build)
    yield release
    release.set()


def test_starts_uninitialized():
    assert pool_state() is PoolState.UNINITIALIZED
    assert not is_initialized()


def test_wait_without_init_raises():
    with pytest.raises(PoolNotReady):
        wait_for_pool()


def test_init_reaches_ready():
    pool = init_pool(2).result(timeout=30)
    assert pool.worker_count == 2
    assert pool_state() is PoolState.READY
    assert wait_for_pool() is pool


def test_init_is_idempotent():
    first = init_pool(2)
    second = init_pool(4)
    assert first is second
    assert first.result(timeout=30).worker_count == 2


def test_init_rejects_non_positive_count():
    with pytest.raises(ValueError):
        init_pool(0)
    assert pool_state() is PoolState.UNINITIALIZED


def test_initializing_state_and_timeout(slow_build):
    future = init_pool(1)
    assert pool_state() is PoolState.INITIALIZING
    assert is_initialized()
    with pytest.raises(PoolNotReady):
        wait_for_pool(timeout=0.05)
    slow_build.set()
    future.result(timeout=30)
    assert pool_state() is PoolState.READY


def test_shutdown_while_initializing(slow_build):
    future = init_pool(1)
    shutdown_pool()
    assert pool_state() is PoolState.UNINITIALIZED
    slow_build.set()
    future.result(timeout=30)
    assert pool_state() is PoolState.UNINITIALIZED
    with pytest.raises(PoolNotReady):
        wait_for_pool()


def test_failed_initialization_can_be_retried(monkeypatch):
    def broken(worker_count):
        raise RuntimeError("no threads for you")

    monkeypatch.setattr(pool_module, "_build_pool", broken)
    with pytest.raises(RuntimeError):
        init_pool(1).result(timeout=30)
    assert pool_state() is PoolState.UNINITIALIZED

    monkeypatch.undo()
    shutdown_pool()
    assert init_pool(1).result(timeout=30).worker_count == 1


def test_shutdown_returns_to_uninitialized():
    init_pool(2).result(timeout=30)
    shutdown_pool()
    assert pool_state() is PoolState.UNINITIALIZED
    assert init_pool(3).result(timeout=30).worker_count == 3


def test_sampling_pool_runs_tasks():
    pool = SamplingPool(2)
    try:
        pool.warm_up()
        assert pool.submit(sum, [1, 2, 3]).result() == 6
    finally:
        pool.shutdown()


def test_sampling_pool_rejects_zero_workers():
    with pytest.raises(ValueError):
        SamplingPool(0)


def test_wait_reports_failed_initialization(monkeypatch):
    started = threading.Event()

    def broken(worker_count):
        started.set()
        time.sleep(0.2)
        raise RuntimeError("boom")

    monkeypatch.setattr(pool_module, "_build_pool", broken)
    init_pool(1)
    assert started.wait(10)
    with pytest.raises(PoolNotReady) as info:
        wait_for_pool(timeout=30)
    assert isinstance(info.value.__cause__, RuntimeError)


def test_default_worker_count_respects_affinity():
    count = default_worker_count()
    assert 1 <= count <= (os.cpu_count() or 1)
    if hasattr(os, "sched_getaffinity"):
        assert count == len(os.sched_getaffinity(0))


def test_default_worker_count_uses_affinity_mask(monkeypatch):
    monkeypatch.setattr(os, "sched_getaffinity", lambda pid: {0, 2}, raising=False)
    assert default_worker_count() == 2
