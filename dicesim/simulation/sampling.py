"""
Uniform dice sampling.

Every die is an independent uniform draw over [1, faces] from a numpy
Generator. Nothing here promises reproducibility; a Generator is only
passed in so that parallel shards can draw from independent streams.
"""

import numpy as np
from typing import Optional

from ..types import DiceExpression, DiceTerm

# Upper bound on dice values materialized by a single numpy draw
MAX_DRAWS_PER_BLOCK = 1 << 22


def sample(expression: DiceExpression, rng: Optional[np.random.Generator] = None) -> int:
    """
    Roll an expression once.

    Args:
        expression: Dice to roll (empty rolls 0)
        rng: Optional Generator; a fresh unseeded one is used otherwise

    Returns:
        Integer in [expression.min_value, expression.max_value]
    """
    if rng is None:
        rng = np.random.default_rng()

    total = 0
    for term in expression.terms:
        total += int(_term_totals(term, 1, rng)[0])
    return total


def sample_many(
    expression: DiceExpression,
    n: int,
    rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """
    Roll an expression ``n`` independent times.

    Args:
        expression: Dice to roll
        n: Number of independent rolls
        rng: Optional Generator

    Returns:
        [n] int64 roll totals
    """
    if n < 0:
        raise ValueError(f"Number of rolls must be non-negative, got {n}")
    if rng is None:
        rng = np.random.default_rng()

    totals = np.zeros(n, dtype=np.int64)
    if n == 0:
        return totals
    for term in expression.terms:
        totals += _term_totals(term, n, rng)
    return totals


def _term_totals(term: DiceTerm, n: int, rng: np.random.Generator) -> np.ndarray:
    """
    Sum of ``term.count`` dice for each of ``n`` rolls.

    Draws in blocks of at most MAX_DRAWS_PER_BLOCK values so that terms like
    "100d6" over a million rolls never allocate the full [n, count] matrix.
    """
    totals = np.zeros(n, dtype=np.int64)

    if term.count == 1:
        for start in range(0, n, MAX_DRAWS_PER_BLOCK):
            stop = min(n, start + MAX_DRAWS_PER_BLOCK)
            totals[start:stop] = rng.integers(
                1, term.faces, size=stop - start, endpoint=True, dtype=np.int64
            )
        return totals

    # Split the dice of each roll into column blocks, then rows into row blocks
    cols_per_block = min(term.count, MAX_DRAWS_PER_BLOCK)
    rows_per_block = max(1, MAX_DRAWS_PER_BLOCK // cols_per_block)

    for col_start in range(0, term.count, cols_per_block):
        n_cols = min(cols_per_block, term.count - col_start)
        for start in range(0, n, rows_per_block):
            stop = min(n, start + rows_per_block)
            block = rng.integers(
                1, term.faces, size=(stop - start, n_cols), endpoint=True, dtype=np.int64
            )
            totals[start:stop] += block.sum(axis=1)

    return totals
