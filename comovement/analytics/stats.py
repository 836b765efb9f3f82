"""
Scalar statistics over cleaned numeric sequences.

Both statistics drop non-numeric and non-finite entries before computing,
and return 0.0 when nothing is left.
"""

import math
from typing import Iterable, List
import numpy as np


def is_finite_number(value) -> bool:
    """Return True for real, finite numbers (booleans excluded)."""
    if isinstance(value, bool):
        return False
    if not isinstance(value, (int, float, np.integer, np.floating)):
        return False
    return math.isfinite(value)


def clean_values(values: Iterable) -> List[float]:
    """Drop non-numeric and non-finite entries, returning floats."""
    if values is None or isinstance(values, (str, bytes)):
        return []
    return [float(v) for v in values if is_finite_number(v)]


def average(values: Iterable) -> float:
    """
    Arithmetic mean of the finite numeric entries of `values`.

    Postconditions:
        - Returns 0.0 if no finite numeric entries remain
        - Input is not modified

    Args:
        values: Sequence of numbers (may contain NaN, inf, None, strings)

    Returns:
        Mean of the cleaned sequence
    """
    cleaned = clean_values(values)
    if not cleaned:
        return 0.0
    return float(np.mean(cleaned))


def standard_deviation(values: Iterable) -> float:
    """
    Population standard deviation of the finite numeric entries of `values`.

    Divides by N, not N-1: sqrt(mean((x - mean(x))^2)).

    Args:
        values: Sequence of numbers (may contain NaN, inf, None, strings)

    Returns:
        Standard deviation of the cleaned sequence, 0.0 if it is empty
    """
    cleaned = clean_values(values)
    if not cleaned:
        return 0.0
    arr = np.asarray(cleaned, dtype=float)
    return float(np.sqrt(np.mean((arr - arr.mean()) ** 2)))
