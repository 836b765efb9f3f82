"""
Core entity classes (ADTs) for the comovement package.

These classes are the value types passed between the fetch layer, the
analytics engine and the presentation layers. None of them persist beyond
a single computation.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class PricePoint:
    """
    A single observed price for one ticker.

    Attributes:
        timestamp: ISO-8601 timestamp string (e.g., "2024-03-01T14:30:00Z")
        price: Observed price

    Representation Invariants:
        - timestamp is a non-empty string
        - price is a finite float
    """
    timestamp: str
    price: float

    def __post_init__(self):
        """Validate representation invariants."""
        if not isinstance(self.timestamp, str) or not self.timestamp:
            raise ValueError("timestamp must be a non-empty string")
        if isinstance(self.price, bool) or not isinstance(self.price, (int, float)):
            raise ValueError(f"price must be numeric, got {type(self.price).__name__}")
        if not math.isfinite(self.price):
            raise ValueError(f"price must be finite, got {self.price}")
        object.__setattr__(self, "price", float(self.price))

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "price": self.price}


@dataclass(frozen=True)
class CorrelationResult:
    """
    Output of the correlation engine.

    Attributes:
        matrix: Square correlation matrix, rows/columns ordered like `tickers`
        standard_deviations: Population standard deviation per ticker
        data_points: Number of common timestamps used (0 if insufficient)
        tickers: Retained tickers, in input order

    Representation Invariants:
        - len(matrix) == len(tickers), every row has len(tickers) entries
        - matrix[i][i] == 1.0 and matrix[i][j] == matrix[j][i]
        - every entry lies in [-1.0, 1.0]
        - data_points == 0 implies matrix, tickers and standard_deviations are empty
    """
    matrix: List[List[float]] = field(default_factory=list)
    standard_deviations: Dict[str, float] = field(default_factory=dict)
    data_points: int = 0
    tickers: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "CorrelationResult":
        """Result signalling that there was not enough overlapping data."""
        return cls(matrix=[], standard_deviations={}, data_points=0, tickers=[])

    @property
    def is_empty(self) -> bool:
        return self.data_points == 0

    def correlation(self, ticker1: str, ticker2: str) -> float:
        """
        Look up the correlation between two retained tickers.

        Raises:
            KeyError: If either ticker was not retained
        """
        if ticker1 not in self.tickers or ticker2 not in self.tickers:
            raise KeyError(f"{ticker1}-{ticker2} not in result")
        return self.matrix[self.tickers.index(ticker1)][self.tickers.index(ticker2)]

    def to_dict(self) -> dict:
        """Serialize using the camelCase keys consumed by the web client."""
        return {
            "matrix": [list(row) for row in self.matrix],
            "standardDeviations": dict(self.standard_deviations),
            "dataPoints": self.data_points,
            "tickers": list(self.tickers),
        }

    def __repr__(self) -> str:
        return f"CorrelationResult({len(self.tickers)} tickers, {self.data_points} points)"


@dataclass(frozen=True)
class SeriesSummary:
    """
    Summary statistics for one price series.

    Attributes:
        latest: Most recent price
        change: latest - first price
        change_percent: Percentage change from first to latest price
        data_points: Number of valid observations
        timestamp: Timestamp of the most recent price
        high: Highest price
        low: Lowest price
        average: Mean price
        volatility: Population standard deviation of prices
    """
    latest: float
    change: float
    change_percent: float
    data_points: int
    timestamp: str
    high: Optional[float] = None
    low: Optional[float] = None
    average: Optional[float] = None
    volatility: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "latest": self.latest,
            "change": self.change,
            "changePercent": self.change_percent,
            "dataPoints": self.data_points,
            "timestamp": self.timestamp,
            "high": self.high,
            "low": self.low,
            "average": self.average,
            "volatility": self.volatility,
        }
