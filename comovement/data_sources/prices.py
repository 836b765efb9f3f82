"""
Price data download and caching.

This module downloads intraday close prices from yfinance and converts them
into the ticker -> [PricePoint] mapping consumed by the correlation engine.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union
import pandas as pd
import yfinance as yf
from comovement.cache import DataCache
from comovement.entities import PricePoint
from comovement.errors import DataError
from comovement.analytics.alignment import filter_lookback

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# One regular US session is 390 minutes.
SESSION_MINUTES = 390

# Yahoo only serves intraday bars this far back per request.
INTRADAY_MAX_SPAN = {
    "1m": timedelta(days=7),
    "2m": timedelta(days=60),
    "5m": timedelta(days=60),
    "15m": timedelta(days=60),
    "30m": timedelta(days=60),
    "90m": timedelta(days=60),
    "60m": timedelta(days=730),
    "1h": timedelta(days=730),
}

# Calendar slack so a window that spans a weekend still reaches back far enough.
WEEKEND_SLACK = timedelta(days=3)


def history_window(
    minutes: int,
    interval: str = "1m",
    now: Optional[datetime] = None
) -> Dict[str, object]:
    """
    yfinance history() arguments that cover a lookback of `minutes`.

    Windows of up to five sessions use the "1d"/"5d" periods. Longer windows
    use an explicit start/end range, capped at the span Yahoo serves for
    intraday intervals.

    Args:
        minutes: Lookback window in minutes (must be positive)
        interval: yfinance bar interval
        now: Range end (defaults to the current UTC time)

    Returns:
        Either {"period": ...} or {"start": ..., "end": ...}

    Raises:
        ValueError: If minutes is not positive
    """
    if minutes <= 0:
        raise ValueError("minutes must be positive")
    if minutes <= SESSION_MINUTES:
        return {"period": "1d"}
    if minutes <= 5 * SESSION_MINUTES:
        return {"period": "5d"}

    end = now or datetime.now(timezone.utc)
    span = timedelta(minutes=minutes) + WEEKEND_SLACK
    cap = INTRADAY_MAX_SPAN.get(interval)
    if cap is not None and span > cap:
        logger.info("Capping %s history at %s (requested %d minutes)", interval, cap, minutes)
        span = cap
    return {"start": end - span, "end": end}


def _window_key(window: Dict[str, object]) -> str:
    if "period" in window:
        return window["period"]
    return f"{int((window['end'] - window['start']).total_seconds() // 60)}min"


def frame_to_points(data: pd.DataFrame) -> List[PricePoint]:
    """
    Convert a yfinance history frame into PricePoint objects.

    Timestamps are rendered as UTC ISO-8601 strings so that series from
    different tickers match exactly. Rows with a missing or non-finite
    Close are skipped.
    """
    if data is None or data.empty or "Close" not in data.columns:
        return []

    index = pd.DatetimeIndex(data.index)
    index = index.tz_localize("UTC") if index.tz is None else index.tz_convert("UTC")

    points = []
    for when, close in zip(index, data["Close"].to_numpy()):
        if close is None or not math.isfinite(float(close)):
            continue
        points.append(PricePoint(timestamp=when.strftime(TIMESTAMP_FORMAT), price=float(close)))
    return points


def get_price_series(
    tickers: Union[str, List[str]],
    minutes: int,
    interval: str = "1m",
    cache: Optional[DataCache] = None,
    use_cache: bool = True
) -> Dict[str, List[PricePoint]]:
    """
    Download close prices covering the last `minutes` for each ticker.

    The window ends at the latest timestamp seen across all tickers.
    Tickers for which yfinance returns nothing are omitted.

    Preconditions:
        - tickers is a non-empty string or list of strings
        - minutes > 0

    Postconditions:
        - Keys follow the order of `tickers`
        - Each series is sorted by timestamp

    Args:
        tickers: Single ticker or list of tickers
        minutes: Lookback window in minutes
        interval: yfinance bar interval
        cache: Optional DataCache instance
        use_cache: Whether to read from the cache

    Returns:
        Mapping of ticker -> list of PricePoint

    Raises:
        ValueError: If tickers is empty or minutes is not positive
        DataError: If no data is returned for any ticker or the download fails
    """
    ticker_list = [tickers] if isinstance(tickers, str) else list(tickers)
    if not ticker_list:
        raise ValueError("tickers cannot be empty")
    window = history_window(minutes, interval)

    query_params = {
        "tickers": sorted(ticker_list),
        "window": _window_key(window),
        "interval": interval,
    }

    raw: Optional[Dict[str, List[PricePoint]]] = None
    if use_cache and cache is not None:
        raw = cache.get(query_params)

    if raw is None:
        try:
            raw = {}
            for ticker in ticker_list:
                history = yf.Ticker(ticker).history(interval=interval, **window)
                points = frame_to_points(history)
                if not points:
                    logger.warning("No price data returned for %s", ticker)
                    continue
                raw[ticker] = points
        except Exception as e:
            raise DataError(f"Failed to download price data: {e}") from e

        if not raw:
            raise DataError(f"No data returned for any ticker in {ticker_list}")

        logger.info("Downloaded %d series (window=%s, interval=%s)", len(raw), query_params["window"], interval)
        if cache is not None:
            cache.set(query_params, raw)

    windowed = filter_lookback(raw, minutes)
    return {
        ticker: sorted(windowed[ticker], key=lambda p: p.timestamp)
        for ticker in ticker_list if windowed.get(ticker)
    }
