"""
Functions for cleaning and aligning raw price series.

Series arrive from the fetch layer as decoded JSON, so entries may be
PricePoint objects, {"timestamp": ..., "price": ...} mappings or
(timestamp, price) pairs. Malformed entries (non-string timestamp,
non-numeric or non-finite price) are skipped, never raised on.

Timestamps are matched by exact string equality; no resampling or
interpolation is performed. ISO-8601 strings sort chronologically, so the
timestamp grid is sorted lexically.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union
import numpy as np
import pandas as pd
from comovement.entities import PricePoint
from comovement.analytics.stats import clean_values, is_finite_number

logger = logging.getLogger(__name__)

StockData = Mapping  # ticker -> sequence of price entries
AlignedDataset = Dict[str, List[float]]


def _unpack(entry) -> Optional[Tuple[object, object]]:
    """Extract (timestamp, price) from one raw entry, or None."""
    if isinstance(entry, PricePoint):
        return entry.timestamp, entry.price
    if isinstance(entry, Mapping):
        return entry.get("timestamp"), entry.get("price")
    if isinstance(entry, (tuple, list)) and len(entry) == 2:
        return entry[0], entry[1]
    return None


def _iter_valid(series) -> Iterator[Tuple[object, str, float]]:
    """Yield (entry, timestamp, price) for each well-formed entry of a series."""
    if series is None or isinstance(series, (str, bytes, Mapping)):
        return
    try:
        entries = list(series)
    except TypeError:
        return

    for entry in entries:
        unpacked = _unpack(entry)
        if unpacked is None:
            continue
        timestamp, price = unpacked
        if not isinstance(timestamp, str) or not timestamp:
            continue
        if not is_finite_number(price):
            continue
        yield entry, timestamp, float(price)


def valid_points(series) -> List[Tuple[str, float]]:
    """
    Extract the well-formed (timestamp, price) pairs of a series.

    Postconditions:
        - Every returned timestamp is a non-empty string
        - Every returned price is a finite float
        - Input order is preserved (no sorting, no deduplication)

    Args:
        series: Sequence of price entries for one ticker

    Returns:
        List of (timestamp, price) tuples
    """
    return [(timestamp, price) for _, timestamp, price in _iter_valid(series)]


def price_lookup(series) -> Dict[str, float]:
    """Map timestamp -> price, keeping the first valid point per timestamp."""
    lookup: Dict[str, float] = {}
    for timestamp, price in valid_points(series):
        lookup.setdefault(timestamp, price)
    return lookup


def align_stock_data(stocks_data: StockData) -> AlignedDataset:
    """
    Align series on the union of all observed timestamps.

    For every timestamp in the sorted union, a ticker contributes its price
    only if it has a point at exactly that timestamp, so vectors may be
    shorter than the grid and differ in length across tickers.

    Postconditions:
        - Every retained vector has at least 2 entries
        - Key order follows the input mapping
        - Input is not modified

    Args:
        stocks_data: Mapping of ticker -> price series

    Returns:
        Mapping of ticker -> aligned price vector
    """
    if not isinstance(stocks_data, Mapping) or not stocks_data:
        return {}

    lookups = {ticker: price_lookup(series) for ticker, series in stocks_data.items()}

    all_timestamps: Set[str] = set()
    for lookup in lookups.values():
        all_timestamps.update(lookup)
    sorted_timestamps = sorted(all_timestamps)

    aligned: AlignedDataset = {}
    for ticker, lookup in lookups.items():
        vector = [lookup[ts] for ts in sorted_timestamps if ts in lookup]
        if len(vector) < 2:
            logger.debug("Dropping %s from aligned data: %d points", ticker, len(vector))
            continue
        aligned[ticker] = vector

    return aligned


def overlapping_tickers(
    stocks_data: StockData,
    tickers: Optional[List[str]] = None,
    min_overlap: int = 2
) -> List[str]:
    """
    Select tickers that can take part in an intersection alignment.

    A ticker needs at least `min_overlap` valid points. When two or more
    tickers qualify, a ticker sharing fewer than `min_overlap` timestamps
    with every other qualifying ticker is excluded.

    Args:
        stocks_data: Mapping of ticker -> price series
        tickers: Tickers to consider (defaults to all keys, in order)
        min_overlap: Minimum number of shared timestamps

    Returns:
        Retained tickers, in input order
    """
    if not isinstance(stocks_data, Mapping):
        return []
    if tickers is None:
        tickers = list(stocks_data.keys())

    stamps = {ticker: set(price_lookup(stocks_data.get(ticker))) for ticker in tickers}
    candidates = [t for t in tickers if len(stamps[t]) >= min_overlap]
    if len(candidates) < 2:
        return candidates

    retained = []
    for ticker in candidates:
        overlaps = any(
            len(stamps[ticker] & stamps[other]) >= min_overlap
            for other in candidates if other != ticker
        )
        if overlaps:
            retained.append(ticker)
        else:
            logger.debug("Excluding %s: no timestamp overlap with other tickers", ticker)
    return retained


def common_timestamps(
    stocks_data: StockData,
    tickers: Optional[List[str]] = None
) -> List[str]:
    """
    Sorted timestamps at which every ticker has a finite price.

    Args:
        stocks_data: Mapping of ticker -> price series
        tickers: Tickers that must all be present (defaults to all keys)

    Returns:
        Sorted list of common timestamps (empty if there are none)
    """
    if not isinstance(stocks_data, Mapping):
        return []
    if tickers is None:
        tickers = list(stocks_data.keys())
    if not tickers:
        return []

    common: Optional[Set[str]] = None
    for ticker in tickers:
        stamps = set(price_lookup(stocks_data.get(ticker)))
        common = stamps if common is None else common & stamps
        if not common:
            return []
    return sorted(common)


def aligned_vectors(
    stocks_data: StockData,
    timestamps: List[str],
    tickers: Optional[List[str]] = None
) -> AlignedDataset:
    """
    Build one price vector per ticker over a fixed list of timestamps.

    A timestamp the ticker has no valid point for yields 0.0; when
    `timestamps` comes from common_timestamps() this never happens.
    Non-finite values are filtered from the result.

    Args:
        stocks_data: Mapping of ticker -> price series
        timestamps: Timestamp grid to align on
        tickers: Tickers to build vectors for (defaults to all keys)

    Returns:
        Mapping of ticker -> price vector, in `tickers` order
    """
    if tickers is None:
        tickers = list(stocks_data.keys())

    aligned: AlignedDataset = {}
    for ticker in tickers:
        lookup = price_lookup(stocks_data.get(ticker))
        vector = [lookup.get(ts, 0.0) for ts in timestamps]
        aligned[ticker] = clean_values(vector)
    return aligned


def _parse_timestamps(stamps: List[str]) -> pd.DatetimeIndex:
    """Parse ISO-8601 strings to UTC in one pass; unparseable ones become NaT."""
    return pd.DatetimeIndex(pd.to_datetime(stamps, utc=True, errors="coerce", format="ISO8601"))


def filter_lookback(
    stocks_data: StockData,
    minutes: int,
    end: Optional[Union[str, datetime, pd.Timestamp]] = None
) -> Dict[str, list]:
    """
    Keep only the points inside a trailing lookback window.

    The window is [end - minutes, end]. Naive timestamps are treated as UTC.
    Points with malformed entries or unparseable timestamps are dropped.

    Preconditions:
        - minutes > 0

    Args:
        stocks_data: Mapping of ticker -> price series
        minutes: Window length in minutes
        end: Window end (defaults to the latest valid timestamp in the data)

    Returns:
        Mapping of ticker -> list of the original entries inside the window

    Raises:
        ValueError: If minutes is not positive
    """
    if minutes is None or minutes <= 0:
        raise ValueError("minutes must be positive")
    if not isinstance(stocks_data, Mapping):
        return {}

    parsed: Dict[str, Tuple[list, pd.DatetimeIndex]] = {}
    latest = None
    for ticker, series in stocks_data.items():
        valid = list(_iter_valid(series))
        entries = [entry for entry, _, _ in valid]
        index = _parse_timestamps([timestamp for _, timestamp, _ in valid])
        parsed[ticker] = (entries, index)
        if len(index) and not index.isna().all():
            ticker_latest = index.max()
            if latest is None or ticker_latest > latest:
                latest = ticker_latest

    if end is None:
        end_ts = latest
    else:
        end_ts = pd.Timestamp(end)
        end_ts = end_ts.tz_localize("UTC") if end_ts.tzinfo is None else end_ts.tz_convert("UTC")

    if end_ts is None:
        return {ticker: [] for ticker in parsed}

    start_ts = end_ts - pd.Timedelta(minutes=minutes)
    windowed = {}
    for ticker, (entries, index) in parsed.items():
        mask = np.asarray((index >= start_ts) & (index <= end_ts))
        windowed[ticker] = [entries[i] for i in np.flatnonzero(mask)]
    return windowed
