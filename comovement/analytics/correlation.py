"""
Pairwise Pearson correlation engine.

This module turns a raw ticker -> price series mapping into a symmetric
correlation matrix plus per-ticker standard deviations, computed over the
timestamps every retained ticker has a price for.

Insufficient data never raises: the engine returns an empty
CorrelationResult (data_points == 0) instead.
"""

import logging
import math
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence
import numpy as np
from comovement.entities import CorrelationResult
from comovement.analytics.stats import is_finite_number, standard_deviation
from comovement.analytics.alignment import (
    aligned_vectors, common_timestamps, filter_lookback, overlapping_tickers
)

logger = logging.getLogger(__name__)


def pearson_correlation(x: Sequence, y: Sequence) -> float:
    """
    Pearson correlation coefficient between two equal-length sequences.

    Only index pairs where both values are finite numbers are used.

    Postconditions:
        - Result lies in [-1.0, 1.0]
        - Returns 0.0 for unequal lengths, fewer than 2 valid pairs,
          or a zero-variance input

    Args:
        x: First sequence
        y: Second sequence

    Returns:
        Correlation coefficient
    """
    if x is None or y is None or len(x) != len(y) or len(x) == 0:
        return 0.0

    pairs = [
        (float(a), float(b)) for a, b in zip(x, y)
        if is_finite_number(a) and is_finite_number(b)
    ]
    if len(pairs) < 2:
        return 0.0

    arr = np.asarray(pairs, dtype=float)
    xs, ys = arr[:, 0], arr[:, 1]

    # A constant column can leave a rounding residue after mean subtraction.
    if np.all(xs == xs[0]) or np.all(ys == ys[0]):
        return 0.0

    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    if denominator == 0:
        return 0.0

    correlation = float(np.sum(dx * dy)) / denominator
    return max(-1.0, min(1.0, correlation))


class CorrelationEngine:
    """
    Computes correlation matrices from raw price series.

    The engine holds no per-call state: compute() is a pure function of its
    input and may be called concurrently.

    Representation Invariants:
        - workers >= 1
    """

    def __init__(self, workers: int = 1):
        """
        Initialize the engine.

        Args:
            workers: Number of threads used for the pairwise loop
                (1 computes sequentially)

        Raises:
            ValueError: If workers < 1
        """
        if workers is None or workers < 1:
            raise ValueError("workers must be at least 1")
        self.workers = workers

    def compute(self, data: Mapping, minutes: Optional[int] = None) -> CorrelationResult:
        """
        Compute the correlation matrix for a ticker -> series mapping.

        Postconditions:
            - Matrix rows/columns follow the input key order, restricted to
              retained tickers
            - Tickers without enough overlapping data are absent from the result
            - Returns CorrelationResult.empty() if several tickers were given
              but fewer than 2 of them overlap
            - Returns CorrelationResult.empty() if fewer than 2 common
              timestamps exist
            - Input is not modified

        Args:
            data: Mapping of ticker -> price series (PricePoint objects,
                {"timestamp", "price"} mappings or (timestamp, price) pairs)
            minutes: Optional lookback window; only points within `minutes`
                of the latest timestamp are used

        Returns:
            CorrelationResult
        """
        if not isinstance(data, Mapping) or len(data) == 0:
            return CorrelationResult.empty()

        if minutes is not None:
            data = filter_lookback(data, minutes)

        tickers = overlapping_tickers(data)
        if not tickers:
            logger.debug("No ticker has enough valid points")
            return CorrelationResult.empty()
        if len(data) >= 2 and len(tickers) < 2:
            logger.debug("No pair of tickers overlaps in %s", list(data.keys()))
            return CorrelationResult.empty()

        timestamps = common_timestamps(data, tickers)
        if len(timestamps) < 2:
            logger.debug("Only %d common timestamps across %s", len(timestamps), tickers)
            return CorrelationResult.empty()

        aligned = aligned_vectors(data, timestamps, tickers)

        std_devs: Dict[str, float] = {
            ticker: standard_deviation(aligned[ticker]) for ticker in tickers
        }
        matrix = self._build_matrix([aligned[ticker] for ticker in tickers])

        dropped = [t for t in data.keys() if t not in tickers]
        if dropped:
            logger.debug("Dropped tickers with insufficient overlap: %s", dropped)

        return CorrelationResult(
            matrix=matrix,
            standard_deviations=std_devs,
            data_points=len(timestamps),
            tickers=list(tickers),
        )

    def _build_matrix(self, vectors: List[List[float]]) -> List[List[float]]:
        """Fill the upper triangle pairwise, mirror it, and set the diagonal."""
        n = len(vectors)
        matrix = [[0.0] * n for _ in range(n)]

        def row_upper(i: int) -> List[float]:
            return [pearson_correlation(vectors[i], vectors[j]) for j in range(i + 1, n)]

        if self.workers > 1 and n > 2:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                rows = list(executor.map(row_upper, range(n)))
        else:
            rows = [row_upper(i) for i in range(n)]

        for i in range(n):
            matrix[i][i] = 1.0
            for offset, value in enumerate(rows[i]):
                j = i + 1 + offset
                matrix[i][j] = value
                matrix[j][i] = value

        return matrix


def calculate_correlation_matrix(
    data: Mapping,
    minutes: Optional[int] = None,
    workers: Optional[int] = None
) -> CorrelationResult:
    """
    Convenience wrapper around CorrelationEngine.compute().

    Args:
        data: Mapping of ticker -> price series
        minutes: Optional lookback window in minutes
        workers: Optional thread count for the pairwise loop

    Returns:
        CorrelationResult
    """
    return CorrelationEngine(workers=workers or 1).compute(data, minutes=minutes)
