from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from dicesim.errors import PoolNotReady
from dicesim.notation import parse
from dicesim.parallel import init_pool
from dicesim.simulation import run, run_decision_set, run_expression, run_shard
from dicesim.simulation.engine import _shard_sizes
from dicesim.types import Comparator, Decision, always


@pytest.fixture
def attack():
    return Decision.from_text(">=", "1d20", 12, "1d10")


def test_zero_iterations_gives_zeros(attack):
    counts = run(attack, 0)
    assert counts.tolist() == [0] * 11


def test_histogram_length_is_max_plus_one():
    decision = Decision.from_text(">", "1d6", 2, "2d6,1d4")
    assert len(run(decision, 1000)) == 17


def test_counts_never_exceed_iterations(attack):
    counts = run(attack, 10_000)
    assert counts.sum() <= 10_000
    assert counts[0] == 0
    assert counts.min() >= 0


def test_unsatisfiable_decision_records_nothing():
    decision = Decision.from_text(">", "1d6", 6, "1d8")
    assert run(decision, 50_000).sum() == 0


def test_always_satisfied_records_every_iteration():
    decision = Decision.from_text("<=", "1d6", 6, "1d8")
    counts = run(decision, 50_000)
    assert counts.sum() == 50_000


def test_fractional_threshold():
    # only a 6 exceeds 5.5
    decision = Decision.from_text(">", "1d6", 5.5, "1d1")
    counts = run(decision, 60_000)
    assert abs(counts[1] / 60_000 - 1 / 6) < 0.01


def test_equality_comparator():
    decision = Decision(Comparator.EQ, parse("2d6"), 7, parse("1d1"))
    counts = run(decision, 120_000)
    assert abs(counts[1] / 120_000 - 6 / 36) < 0.01


def test_empty_payoff_records_zero_bucket():
    decision = Decision.from_text(">=", "1d20", 11, "")
    counts = run(decision, 10_000)
    assert len(counts) == 1
    assert 0 < counts[0] < 10_000


def test_convergence_to_exact_distribution():
    # hit rate 9/20, each of ten payoff values 0.045
    decision = Decision.from_text(">=", "1d20", 12, "1d10")
    init_pool(4).result()
    n = 1_000_000
    counts = run(decision, n, parallel=True)
    assert counts.sum() <= n
    assert abs(counts.sum() / n - 0.45) < 0.0045
    assert np.all(np.abs(counts[1:] / n - 0.045) < 0.0015)


def test_bare_expression_mean():
    counts = run_expression(parse("1d6"), 200_000)
    assert counts.sum() == 200_000
    mean = np.dot(np.arange(len(counts)), counts) / 200_000
    assert abs(mean - 3.5) < 0.02


def test_parallel_and_serial_agree_on_shape(attack):
    init_pool(3).result()
    parallel = run(attack, 100_001, parallel=True)
    serial = run(attack, 100_001, parallel=False)
    assert parallel.shape == serial.shape
    assert abs(parallel.sum() - serial.sum()) < 2_000


def test_fewer_iterations_than_threads(attack):
    init_pool(8).result()
    counts = run(always(parse("1d4")), 3, parallel=True)
    assert counts.sum() == 3


def test_parallel_requires_initialized_pool(attack):
    with pytest.raises(PoolNotReady):
        run(attack, 100, parallel=True)


def test_default_runs_serially_without_pool(attack):
    assert run(attack, 100).sum() <= 100


@pytest.mark.parametrize("iterations", [-1, 2.5])
def test_invalid_iterations(attack, iterations):
    with pytest.raises(ValueError):
        run(attack, iterations)


def test_run_shard_small_batches(attack):
    counts = run_shard(attack, 1_000, np.random.default_rng(), batch_size=7)
    assert len(counts) == 11
    assert counts.sum() <= 1_000


def test_shard_sizes_cover_iterations():
    assert _shard_sizes(10, 4) == [3, 3, 2, 2]
    assert _shard_sizes(3, 8) == [1, 1, 1]
    assert sum(_shard_sizes(1_000_003, 7)) == 1_000_003


def test_decision_set_sums_with_misses_as_zero():
    never = Decision.from_text(">", "1d6", 6, "1d8")
    always_two = Decision.from_text(">=", "1d6", 1, "2d1")
    counts = run_decision_set([never, always_two], 5_000)
    assert len(counts) == 8 + 2 + 1
    assert counts.sum() == 5_000
    assert counts[2] == 5_000


def test_decision_set_empty():
    counts = run_decision_set([], 100)
    assert counts.tolist() == [100]


def test_concurrent_callers_share_the_pool():
    init_pool(4).result()
    decisions = [
        Decision.from_text(">=", "1d20", 12, "1d10"),
        Decision.from_text("<=", "1d6", 6, "2d6"),
        Decision.from_text(">", "1d6", 6, "1d4"),
        always(parse("3d6,1d4")),
    ]
    n = 50_000
    with ThreadPoolExecutor(max_workers=len(decisions)) as callers:
        futures = [callers.submit(run, d, n, parallel=True) for d in decisions]
        results = [f.result(timeout=120) for f in futures]

    for decision, counts in zip(decisions, results):
        assert len(counts) == decision.max_value + 1
        assert counts.sum() <= n
    assert abs(results[0].sum() / n - 0.45) < 0.02
    assert results[1].sum() == n
    assert results[2].sum() == 0
    assert results[3].sum() == n
