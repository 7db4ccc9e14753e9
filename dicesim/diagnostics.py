"""
Console reporting for simulation results.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from .types import Decision
from .stats.histogram import SimulationResult

# Quantiles shown in the summary block
REPORT_QUANTILES = (0.05, 0.25, 0.5, 0.75, 0.95)


def result_summary(result: SimulationResult) -> Dict:
    """Key statistics of a result as a flat dict."""
    low, high = result.hit_rate_interval()
    summary = {
        'iterations': result.iterations,
        'hits': result.hits,
        'hit_rate': result.hit_rate,
        'hit_rate_ci95': (low, high),
        'mean': result.mean,
        'std': result.std,
        'denominator': result.denominator,
    }
    if result.hits:
        summary['quantiles'] = {q: result.quantile(q) for q in REPORT_QUANTILES}
    return summary


def format_result(
    result: SimulationResult,
    decision: Optional[Decision] = None,
    name: Optional[str] = None,
    max_rows: int = 40
) -> str:
    """Format one result into readable console output."""
    lines = []
    if name:
        lines.append(name.upper())
    elif decision is not None:
        lines.append(str(decision))
    else:
        lines.append("SIMULATION RESULT")
    lines.append("=" * 60)
    if name and decision is not None:
        lines.append(f"  Decision: {decision}")

    s = result_summary(result)
    low, high = s['hit_rate_ci95']
    lines.append(f"  Iterations: {s['iterations']:,}")
    lines.append(f"  Hits:       {s['hits']:,} ({s['hit_rate']:.2%}, 95% CI {low:.2%} - {high:.2%})")
    per = "per iteration" if result.denominator == "iterations" else "per hit"
    lines.append(f"  Mean:       {s['mean']:.4f} ({per})")
    lines.append(f"  Std dev:    {s['std']:.4f}")

    if 'quantiles' in s:
        q_text = ", ".join(f"p{int(q * 100)}={v}" for q, v in s['quantiles'].items())
        lines.append(f"  Quantiles:  {q_text}")

    rows = _nonzero_rows(result)
    if rows:
        lines.append(f"\n  {'Value':>6}  {'Count':>12}  {'Probability':>11}")
        shown = rows if len(rows) <= max_rows else rows[:max_rows]
        for value, count, prob in shown:
            lines.append(f"  {value:>6}  {count:>12,}  {prob:>11.4%}")
        if len(rows) > max_rows:
            lines.append(f"  ... {len(rows) - max_rows} more value(s)")
    else:
        lines.append("\n  No outcomes recorded.")

    return "\n".join(lines)


def format_batch(
    results: Sequence[SimulationResult],
    decisions: Sequence[Decision],
    names: Optional[Sequence[str]] = None
) -> str:
    """Format a batch of results, one block per decision plus a comparison table."""
    if names is None:
        names = [f"decision_{i + 1}" for i in range(len(decisions))]

    blocks = [
        format_result(result, decision, name)
        for result, decision, name in zip(results, decisions, names)
    ]
    if len(results) > 1:
        table = ["COMPARISON", "=" * 60]
        for result, name in zip(results, names):
            table.append(f"  {name:<24} hit {result.hit_rate:>7.2%}  mean {result.mean:>9.4f}")
        blocks.append("\n".join(table))
    return "\n\n".join(blocks)


def _nonzero_rows(result: SimulationResult) -> List[Tuple[int, int, float]]:
    return [
        (value, int(count), float(result.probabilities[value]))
        for value, count in enumerate(result.counts)
        if count > 0
    ]
