import numpy as np
import pytest

from dicesim.notation import parse
from dicesim.simulation import sample, sample_many
from dicesim.simulation import sampling
from dicesim.types import DiceExpression


def test_sample_within_bounds():
    expr = parse("2d6,1d4")
    rng = np.random.default_rng()
    for _ in range(500):
        assert 3 <= sample(expr, rng) <= 16


def test_sample_empty_is_zero():
    assert sample(DiceExpression()) == 0
    assert sample_many(DiceExpression(), 10).tolist() == [0] * 10


def test_sample_many_bounds_and_dtype():
    rolls = sample_many(parse("3d6"), 100_000)
    assert rolls.dtype == np.int64
    assert rolls.min() >= 3
    assert rolls.max() <= 18


def test_sample_many_hits_every_face():
    rolls = sample_many(parse("1d6"), 60_000)
    counts = np.bincount(rolls, minlength=7)
    assert counts[0] == 0
    # each face expects 10000; sd is about 91
    assert np.all(np.abs(counts[1:] - 10_000) < 600)


def test_single_faced_die_is_constant():
    assert sample_many(parse("5d1"), 100).tolist() == [5] * 100


def test_sample_many_rejects_negative():
    with pytest.raises(ValueError):
        sample_many(parse("1d6"), -1)


def test_sample_many_zero_rolls():
    assert len(sample_many(parse("1d6"), 0)) == 0


def test_block_splitting_keeps_bounds(monkeypatch):
    monkeypatch.setattr(sampling, "MAX_DRAWS_PER_BLOCK", 7)
    rolls = sample_many(parse("10d6,1d4"), 1000)
    assert len(rolls) == 1000
    assert rolls.min() >= 11
    assert rolls.max() <= 64
    assert abs(rolls.mean() - 37.5) < 1.0
