"""
Outcome histograms and summary statistics.

Raw counts come out of the simulation driver; everything here is a pure
transform over them. Probabilities are always derived from counts, never
from already-normalized values.
"""

import numpy as np
import pandas as pd
from scipy import stats
from dataclasses import dataclass
from typing import Dict, Literal, Sequence, Tuple

# What the bucket probabilities are divided by:
#   "iterations": every trial, so a non-triggering trial acts as a 0 payoff
#                 and probabilities sum to the hit rate
#   "hits":       only trials that triggered (distribution given a trigger)
Denominator = Literal["iterations", "hits"]
DENOMINATORS: Tuple[str, ...] = ("iterations", "hits")


def normalize(counts: np.ndarray, iterations: int) -> np.ndarray:
    """
    Convert raw counts into per-bucket probabilities.

    Args:
        counts: [n] raw counts
        iterations: Denominator; 0 gives all zeros

    Returns:
        [n] float64 probabilities
    """
    counts = np.asarray(counts)
    if iterations < 0:
        raise ValueError(f"iterations must be non-negative, got {iterations}")
    if iterations == 0:
        return np.zeros(len(counts), dtype=np.float64)
    return counts.astype(np.float64) / float(iterations)


def mean(probabilities: np.ndarray) -> float:
    """Expected value: sum of bucket index times bucket probability."""
    probabilities = np.asarray(probabilities, dtype=np.float64)
    if len(probabilities) == 0:
        return 0.0
    return float(np.dot(np.arange(len(probabilities)), probabilities))


def merge_counts(parts: Sequence[np.ndarray]) -> np.ndarray:
    """
    Sum several count histograms.

    Shorter histograms are accumulated into the front of the longest one.
    """
    if not parts:
        return np.zeros(0, dtype=np.int64)
    length = max(len(part) for part in parts)
    merged = np.zeros(length, dtype=np.int64)
    for part in parts:
        merged[:len(part)] += part
    return merged


@dataclass(frozen=True, eq=False)
class SimulationResult:
    """
    Histogram of one simulation run plus derived statistics.

    Attributes:
        counts: [max+1] int64 raw counts per outcome value
        probabilities: [max+1] float64 counts divided by the denominator
        iterations: Number of iterations simulated
        hits: Number of iterations that recorded an outcome (counts.sum())
        denominator: "iterations" or "hits"
        mean: Sum of value * probability
    """
    counts: np.ndarray
    probabilities: np.ndarray
    iterations: int
    hits: int
    denominator: str
    mean: float

    @classmethod
    def from_counts(
        cls,
        counts: np.ndarray,
        iterations: int,
        denominator: Denominator = "iterations"
    ) -> 'SimulationResult':
        """
        Build a result from raw counts.

        Raises:
            ValueError: If counts are negative or sum past ``iterations``,
                        or the denominator is unknown
        """
        if denominator not in DENOMINATORS:
            raise ValueError(
                f"Unknown denominator {denominator!r}; expected one of {DENOMINATORS}"
            )

        counts = np.array(counts, dtype=np.int64)
        hits = int(counts.sum())
        if len(counts) and int(counts.min()) < 0:
            raise ValueError("Histogram counts must be non-negative")
        # FAIL-FAST: more hits than trials means these are not raw counts
        if hits > iterations:
            raise ValueError(
                f"Histogram holds {hits} outcomes but only {iterations} iterations were run"
            )

        total = iterations if denominator == "iterations" else hits
        probabilities = normalize(counts, total)

        counts.setflags(write=False)
        probabilities.setflags(write=False)
        return cls(
            counts=counts,
            probabilities=probabilities,
            iterations=int(iterations),
            hits=hits,
            denominator=denominator,
            mean=mean(probabilities),
        )

    @property
    def max_value(self) -> int:
        return len(self.counts) - 1

    @property
    def hit_rate(self) -> float:
        """Fraction of iterations that recorded an outcome."""
        return self.hits / self.iterations if self.iterations else 0.0

    @property
    def miss_rate(self) -> float:
        return 1.0 - self.hit_rate if self.iterations else 0.0

    @property
    def variance(self) -> float:
        """Variance under the same denominator as ``mean``."""
        values = np.arange(len(self.probabilities), dtype=np.float64)
        second_moment = float(np.dot(values * values, self.probabilities))
        return max(second_moment - self.mean ** 2, 0.0)

    @property
    def std(self) -> float:
        return float(np.sqrt(self.variance))

    def hit_rate_interval(self, confidence: float = 0.95) -> Tuple[float, float]:
        """
        Exact (Clopper-Pearson) confidence interval for the hit rate.

        Returns (0.0, 1.0) when no iterations were run.
        """
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"confidence must lie in (0, 1), got {confidence}")
        if self.iterations == 0:
            return (0.0, 1.0)
        ci = stats.binomtest(self.hits, self.iterations).proportion_ci(
            confidence_level=confidence, method="exact"
        )
        return (float(ci.low), float(ci.high))

    def cdf(self) -> np.ndarray:
        """Cumulative probabilities, P(outcome <= v) for each bucket v."""
        return np.cumsum(self.probabilities)

    def quantile(self, q: float) -> int:
        """
        Smallest recorded value v with at least a ``q`` share of recorded
        outcomes at or below it. Misses are not outcomes.

        Raises:
            ValueError: If q is outside [0, 1] or nothing was recorded
        """
        if not 0.0 <= q <= 1.0:
            raise ValueError(f"q must lie in [0, 1], got {q}")
        if self.hits == 0:
            raise ValueError("No outcomes were recorded; quantiles are undefined")
        shares = np.cumsum(self.counts) / self.hits
        idx = int(np.searchsorted(shares, q, side='left'))
        # never report a value that was not observed (q=0 lands on an empty bucket)
        observed = np.flatnonzero(self.counts)
        return int(observed[np.searchsorted(observed, idx, side='left')])

    def to_frame(self) -> pd.DataFrame:
        """One row per outcome value: value, count, probability."""
        return pd.DataFrame({
            'value': np.arange(len(self.counts)),
            'count': self.counts,
            'probability': self.probabilities,
        })

    def to_dict(self) -> Dict:
        """Convert to serializable dict."""
        low, high = self.hit_rate_interval()
        return {
            'iterations': self.iterations,
            'hits': self.hits,
            'hit_rate': self.hit_rate,
            'hit_rate_ci95': [low, high],
            'denominator': self.denominator,
            'mean': self.mean,
            'std': self.std,
            'counts': self.counts.tolist(),
            'probabilities': self.probabilities.tolist(),
        }


def summarize(
    counts: np.ndarray,
    iterations: int,
    denominator: Denominator = "iterations"
) -> SimulationResult:
    """Normalize raw counts and derive summary statistics."""
    return SimulationResult.from_counts(counts, iterations, denominator)
