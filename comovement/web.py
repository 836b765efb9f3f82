"""
FastAPI web interface for price data and correlation analysis.

Serves the watchlist, intraday price series and correlation matrices to the
dashboard client. Input is validated with pydantic models before any
download is attempted.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, validator
from comovement.analytics.alignment import filter_lookback
from comovement.analytics.correlation import CorrelationEngine
from comovement.analytics.summary import summarize_all
from comovement.cache import DataCache
from comovement.config import load_settings
from comovement.data_sources.prices import get_price_series
from comovement.errors import DataError

logger = logging.getLogger(__name__)

settings = load_settings()

app = FastAPI(title="Stock Correlation Analysis")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8000"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

TICKER_PATTERN = re.compile(r'^[A-Z0-9.\-^=]+$')
MAX_MINUTES = 7 * 24 * 60

# Intraday bars refresh every minute.
CACHE_TTL_SECONDS = 60

_cache: Optional[DataCache] = None


def get_cache() -> DataCache:
    global _cache
    if _cache is None:
        _cache = DataCache(settings.cache_dir, ttl_seconds=CACHE_TTL_SECONDS)
    return _cache


def _validate_minutes(v):
    if v is None:
        return v
    if v <= 0 or v > MAX_MINUTES:
        raise ValueError(f"minutes must be between 1 and {MAX_MINUTES}")
    return v


class StockDataRequest(BaseModel):
    tickers: List[str]
    minutes: int = settings.default_minutes

    @validator('tickers')
    def validate_tickers(cls, v):
        if not v:
            raise ValueError("At least one ticker is required")
        if len(v) > settings.max_tickers:
            raise ValueError(f"Too many tickers (max {settings.max_tickers})")
        validated = []
        for ticker in v:
            ticker = ticker.strip().upper()
            if not ticker or len(ticker) > 10:
                raise ValueError(f"Invalid ticker: {ticker}")
            if not TICKER_PATTERN.match(ticker):
                raise ValueError(f"Invalid ticker format: {ticker}")
            if ticker not in validated:
                validated.append(ticker)
        return validated

    @validator('minutes')
    def validate_minutes(cls, v):
        return _validate_minutes(v)


class ComputeRequest(BaseModel):
    data: Dict[str, List[Any]]
    minutes: Optional[int] = None

    @validator('data')
    def validate_data(cls, v):
        if len(v) > settings.max_tickers:
            raise ValueError(f"Too many tickers (max {settings.max_tickers})")
        return v

    @validator('minutes')
    def validate_minutes(cls, v):
        return _validate_minutes(v)


def _serialize_series(stocks_data: Dict[str, list]) -> Dict[str, List[dict]]:
    return {ticker: [p.to_dict() for p in points] for ticker, points in stocks_data.items()}


def _correlation_payload(stocks_data) -> dict:
    result = CorrelationEngine(workers=settings.workers).compute(stocks_data)
    payload = result.to_dict()
    payload["summaries"] = {
        ticker: summary.to_dict() for ticker, summary in summarize_all(stocks_data).items()
    }
    return payload


@app.get("/api/stocks")
async def list_stocks():
    """Watchlist of ticker -> company name."""
    return settings.stocks


@app.post("/api/stocks/data")
async def get_stocks_data(request: StockDataRequest):
    """Price series for the requested tickers over the lookback window."""
    try:
        stocks_data = get_price_series(
            request.tickers, request.minutes,
            interval=settings.interval, cache=get_cache()
        )
    except DataError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _serialize_series(stocks_data)


@app.post("/api/correlation")
async def get_correlation(request: StockDataRequest):
    """Download prices and compute the correlation matrix."""
    try:
        stocks_data = get_price_series(
            request.tickers, request.minutes,
            interval=settings.interval, cache=get_cache()
        )
    except DataError as e:
        raise HTTPException(status_code=404, detail=str(e))

    payload = _correlation_payload(stocks_data)
    payload["minutes"] = request.minutes
    return payload


@app.post("/api/correlation/compute")
async def compute_correlation(request: ComputeRequest):
    """Compute the correlation matrix from caller-supplied series."""
    stocks_data = request.data
    if request.minutes is not None:
        stocks_data = filter_lookback(stocks_data, request.minutes)
    return _correlation_payload(stocks_data)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000)
