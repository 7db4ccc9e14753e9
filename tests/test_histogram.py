import numpy as np
import pytest

from dicesim.stats import SimulationResult, merge_counts, mean, normalize, summarize


def test_normalize():
    assert normalize(np.array([0, 2, 6]), 8).tolist() == [0.0, 0.25, 0.75]


def test_normalize_zero_iterations():
    assert normalize(np.array([0, 0, 0]), 0).tolist() == [0.0, 0.0, 0.0]


def test_normalize_negative_iterations():
    with pytest.raises(ValueError):
        normalize(np.array([1]), -1)


def test_mean_is_index_weighted():
    assert mean(np.array([0.0, 0.5, 0.5])) == pytest.approx(1.5)
    assert mean(np.array([])) == 0.0


def test_mean_counts_misses_as_zero():
    # 45% hit rate, payoff uniform 1..10
    probabilities = np.array([0.0] + [0.045] * 10)
    assert mean(probabilities) == pytest.approx(2.475)


def test_summarize_iterations_denominator():
    result = summarize(np.array([0, 1, 3]), 8)
    assert result.hits == 4
    assert result.hit_rate == 0.5
    assert result.miss_rate == 0.5
    assert result.probabilities.sum() == pytest.approx(0.5)
    assert result.mean == pytest.approx((1 + 6) / 8)


def test_summarize_hits_denominator():
    result = summarize(np.array([0, 1, 3]), 8, denominator="hits")
    assert result.probabilities.tolist() == [0.0, 0.25, 0.75]
    assert result.mean == pytest.approx(1.75)
    assert result.hit_rate == 0.5


def test_summarize_rejects_unknown_denominator():
    with pytest.raises(ValueError):
        summarize(np.array([1]), 1, denominator="trials")


def test_summarize_fails_fast_on_impossible_counts():
    with pytest.raises(ValueError):
        summarize(np.array([5, 5]), 9)
    with pytest.raises(ValueError):
        summarize(np.array([-1, 2]), 9)


def test_zero_iteration_result():
    result = summarize(np.zeros(4, dtype=np.int64), 0)
    assert result.hit_rate == 0.0
    assert result.mean == 0.0
    assert result.hit_rate_interval() == (0.0, 1.0)


def test_result_arrays_are_read_only():
    result = summarize(np.array([0, 1, 1]), 2)
    with pytest.raises(ValueError):
        result.counts[0] = 1


def test_variance_and_std():
    result = summarize(np.array([0, 1, 0, 1]), 2)
    assert result.mean == pytest.approx(2.0)
    assert result.variance == pytest.approx(1.0)
    assert result.std == pytest.approx(1.0)


def test_hit_rate_interval_contains_estimate():
    result = summarize(np.array([0, 450, 0]), 1000)
    low, high = result.hit_rate_interval()
    assert low < 0.45 < high
    assert high - low < 0.07


def test_quantile_reports_observed_values():
    result = summarize(np.array([0, 0, 2, 0, 2]), 10)
    assert result.quantile(0.0) == 2
    assert result.quantile(0.5) == 2
    assert result.quantile(0.51) == 4
    assert result.quantile(1.0) == 4


def test_quantile_without_hits():
    result = summarize(np.array([0, 0]), 10)
    with pytest.raises(ValueError):
        result.quantile(0.5)


def test_cdf_ends_at_probability_mass():
    result = summarize(np.array([0, 1, 1]), 4)
    assert result.cdf().tolist() == [0.0, 0.25, 0.5]


def test_to_frame():
    frame = summarize(np.array([0, 3, 1]), 4).to_frame()
    assert list(frame.columns) == ["value", "count", "probability"]
    assert frame["value"].tolist() == [0, 1, 2]
    assert frame["probability"].tolist() == [0.0, 0.75, 0.25]


def test_to_dict_is_json_ready():
    data = summarize(np.array([0, 3, 1]), 4).to_dict()
    assert data["counts"] == [0, 3, 1]
    assert data["hits"] == 4
    assert isinstance(data["hit_rate_ci95"], list)


def test_merge_counts():
    merged = merge_counts([np.array([1, 2]), np.array([0, 1, 5])])
    assert merged.tolist() == [1, 3, 5]
    assert merge_counts([]).tolist() == []


def test_from_counts_equals_summarize():
    counts = np.array([0, 2, 2])
    assert SimulationResult.from_counts(counts, 5).mean == summarize(counts, 5).mean
