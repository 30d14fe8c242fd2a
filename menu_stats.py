"""
Shared statistics helpers for the menu profit engine.

One definition of rounding, median and percentile is used everywhere so the
quadrant split and the profit-leak cutoffs can never drift apart.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

import numpy as np

CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round to 2 decimal places, half-up (currency rounding)."""
    if value is None:
        return 0.0
    value = float(value)
    if not math.isfinite(value):
        return value
    return float(Decimal(repr(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def round0(value: float) -> int:
    """Round to a whole number, half-up (2.5 -> 3, unlike built-in round)."""
    if value is None:
        return 0
    value = float(value)
    if not math.isfinite(value):
        return 0
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def median(values: Iterable[float]) -> float:
    """
    Median of a sequence.

    Even length -> mean of the two central values, odd length -> central value,
    empty -> 0. Callers must drop undefined margins before calling.
    """
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.median(arr))


def percentile(sorted_values: list, pct: float) -> float:
    """
    Nearest-rank percentile over an ascending list.

    Index is min(n - 1, floor(pct / 100 * n)); empty list -> 0.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = min(n - 1, int(math.floor(pct / 100 * n)))
    return float(sorted_values[idx])


def bottom_cutoff_index(n: int, bottom_pct: float) -> int:
    """Index of the last item inside the bottom `bottom_pct` percent of n sorted items."""
    return max(0, int(math.floor(n * (bottom_pct / 100))) - 1)
