import pytest

from dicesim.errors import ResourceAlreadyReleased
from dicesim.parallel.worker import WorkerHandle
from dicesim.types import Decision


@pytest.fixture(scope="module")
def worker():
    handle = WorkerHandle.acquire(worker_threads=2)
    yield handle
    handle.release()


def test_run_returns_counts(worker):
    decision = Decision.from_text(">=", "1d20", 12, "1d10")
    counts = worker.run(decision, 20_000).result(timeout=120)
    assert len(counts) == 11
    assert 0 < counts.sum() <= 20_000
    assert abs(counts.sum() / 20_000 - 0.45) < 0.03


def test_zero_iterations(worker):
    decision = Decision.from_text("<", "1d6", 3.5, "2d4")
    assert worker.run(decision, 0).result(timeout=120).tolist() == [0] * 9


def test_negative_iterations_rejected(worker):
    decision = Decision.from_text("<", "1d6", 3, "1d4")
    with pytest.raises(ValueError):
        worker.run(decision, -5)


def test_release_is_idempotent():
    handle = WorkerHandle.acquire(worker_threads=0)
    assert not handle.released
    assert handle.release() is True
    assert handle.released
    assert handle.release() is False


def test_run_after_release_raises():
    handle = WorkerHandle.acquire(worker_threads=0)
    handle.release()
    with pytest.raises(ResourceAlreadyReleased):
        handle.run(Decision.from_text(">", "1d6", 3, "1d6"), 10)


def test_context_manager_releases():
    with WorkerHandle.acquire(worker_threads=0) as handle:
        counts = handle.run(Decision.from_text("=", "1d1", 1, "1d1"), 100).result(timeout=120)
        assert counts.tolist() == [0, 100]
    assert handle.released
    assert "released" in repr(handle)


def test_acquire_rejects_negative_threads():
    with pytest.raises(ValueError):
        WorkerHandle.acquire(worker_threads=-1)


def test_fractional_iterations_rejected(worker):
    decision = Decision.from_text("=", "1d1", 1, "1d1")
    with pytest.raises(ValueError):
        worker.run(decision, 2.5)
