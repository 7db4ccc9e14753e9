"""
Statistical validation of the simulation engine.

Runs known decisions for many iterations and checks the estimates against
their exact values: hit rate, bucket uniformity (chi-square) and mean.

Usage:
    python scripts/validate_convergence.py --iterations 1000000 --mode threads
"""

import argparse
import sys
import numpy as np
from pathlib import Path
from scipy import stats

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dicesim.types import Decision, always
from dicesim.notation.parser import parse
from dicesim.parallel.pool import init_pool, shutdown_pool
from dicesim.simulation.engine import run
from dicesim.stats.histogram import summarize


def check_hit_rate(counts: np.ndarray, iterations: int, expected: float, rel_tol: float) -> tuple:
    """Returns (passed, observed_rate)."""
    observed = counts.sum() / iterations if iterations else 0.0
    return abs(observed - expected) <= rel_tol * expected, float(observed)


def check_uniform_buckets(counts: np.ndarray, first: int, alpha: float) -> tuple:
    """Chi-square test that buckets first..end are uniform. Returns (passed, p_value)."""
    observed = counts[first:]
    _, p_value = stats.chisquare(observed)
    return p_value >= alpha, float(p_value)


def main():
    parser = argparse.ArgumentParser(description="Validate simulation convergence")
    parser.add_argument("--iterations", type=int, default=1_000_000)
    parser.add_argument("--mode", choices=["serial", "threads"], default="threads")
    parser.add_argument("--threads", type=int, default=None)
    parser.add_argument("--alpha", type=float, default=0.001,
                        help="Significance level for the uniformity test (default: 0.001)")
    args = parser.parse_args()

    parallel = args.mode == "threads"
    if parallel:
        init_pool(args.threads).result()

    failures = 0

    # 1d20 >= 12 -> 1d10: hit rate 9/20, payoff uniform over 1..10
    print("=" * 60)
    print("1d20 >= 12 THEN 1d10")
    print("=" * 60)
    decision = Decision.from_text(">=", "1d20", 12, "1d10")
    counts = run(decision, args.iterations, parallel=parallel)
    ok, rate = check_hit_rate(counts, args.iterations, 0.45, rel_tol=0.01)
    print(f"  Hit rate: {rate:.5f} (expected 0.45000) {'PASS' if ok else 'FAIL'}")
    failures += not ok
    ok, p_value = check_uniform_buckets(counts, 1, args.alpha)
    print(f"  Bucket uniformity: p={p_value:.4f} {'PASS' if ok else 'FAIL'}")
    failures += not ok
    print(f"  Buckets: {counts[1:].tolist()}")

    # Always-triggered 1d6: mean 3.5
    print("\n" + "=" * 60)
    print("ALWAYS 1d6")
    print("=" * 60)
    counts = run(always(parse("1d6")), args.iterations, parallel=parallel)
    result = summarize(counts, args.iterations)
    ok = abs(result.mean - 3.5) < 0.01
    print(f"  Mean: {result.mean:.5f} (expected 3.50000) {'PASS' if ok else 'FAIL'}")
    failures += not ok

    # 3d6: exact distribution by convolution
    print("\n" + "=" * 60)
    print("ALWAYS 3d6 (exact distribution)")
    print("=" * 60)
    counts = run(always(parse("3d6")), args.iterations, parallel=parallel)
    die = np.array([0] + [1] * 6, dtype=np.float64) / 6
    exact = np.convolve(np.convolve(die, die), die)
    expected_counts = exact[3:] * args.iterations
    _, p_value = stats.chisquare(counts[3:], expected_counts)
    ok = p_value >= args.alpha
    print(f"  Goodness of fit: p={p_value:.4f} {'PASS' if ok else 'FAIL'}")
    failures += not ok

    if parallel:
        shutdown_pool()

    print(f"\n{'ALL CHECKS PASSED' if failures == 0 else f'{failures} CHECK(S) FAILED'}")
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
