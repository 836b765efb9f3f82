"""
Per-series summary statistics for display.
"""

import logging
from typing import Dict, Optional
from collections.abc import Mapping
from comovement.entities import SeriesSummary
from comovement.analytics.alignment import valid_points
from comovement.analytics.stats import average, standard_deviation
from comovement.formatting import percentage_change

logger = logging.getLogger(__name__)


def summarize_series(series) -> Optional[SeriesSummary]:
    """
    Summarize one price series.

    Points are ordered by timestamp before taking first/latest, since the
    source order is not guaranteed to be chronological.

    Args:
        series: Sequence of price entries for one ticker

    Returns:
        SeriesSummary, or None if the series has no valid points
    """
    points = sorted(valid_points(series), key=lambda p: p[0])
    if not points:
        return None

    prices = [price for _, price in points]
    first = prices[0]
    latest = prices[-1]

    return SeriesSummary(
        latest=latest,
        change=latest - first,
        change_percent=percentage_change(latest, first),
        data_points=len(prices),
        timestamp=points[-1][0],
        high=max(prices),
        low=min(prices),
        average=average(prices),
        volatility=standard_deviation(prices),
    )


def summarize_all(stocks_data: Mapping) -> Dict[str, SeriesSummary]:
    """
    Summarize every series in a ticker -> series mapping.

    Tickers with no valid points are omitted.
    """
    summaries = {}
    if not isinstance(stocks_data, Mapping):
        return summaries
    for ticker, series in stocks_data.items():
        summary = summarize_series(series)
        if summary is None:
            logger.debug("No valid points to summarize for %s", ticker)
            continue
        summaries[ticker] = summary
    return summaries
