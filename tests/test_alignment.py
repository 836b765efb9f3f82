"""
Tests for series cleaning and alignment.

Tests cover:
- Extraction of valid points from mixed entry shapes
- Union-mode alignment
- Intersection-mode timestamps and vectors
- Overlap-based ticker selection
- Lookback window filtering
"""

import pytest
import pandas as pd
from comovement.entities import PricePoint
from comovement.analytics.alignment import (
    valid_points, price_lookup, align_stock_data, common_timestamps,
    aligned_vectors, overlapping_tickers, filter_lookback
)

T1 = "2024-03-01T14:30:00Z"
T2 = "2024-03-01T14:31:00Z"
T3 = "2024-03-01T14:32:00Z"
T4 = "2024-03-01T14:33:00Z"


class TestValidPoints:
    """Tests for valid_points()."""

    def test_accepts_mixed_entry_shapes(self):
        """Test that PricePoint, mapping and tuple entries are all accepted."""
        series = [
            PricePoint(T1, 100.0),
            {"timestamp": T2, "price": 101},
            (T3, 102.5),
        ]
        assert valid_points(series) == [(T1, 100.0), (T2, 101.0), (T3, 102.5)]

    def test_skips_malformed_entries(self):
        """Test that entries with bad timestamps or prices are skipped."""
        series = [
            {"timestamp": T1, "price": float("nan")},
            {"timestamp": T2, "price": "101"},
            {"timestamp": 12345, "price": 101},
            {"timestamp": T3},
            None,
            "garbage",
            {"timestamp": T4, "price": 103},
        ]
        assert valid_points(series) == [(T4, 103.0)]

    def test_non_sequence_is_empty(self):
        """Test that non-sequence inputs yield no points."""
        assert valid_points(None) == []
        assert valid_points("abc") == []
        assert valid_points({"timestamp": T1, "price": 1}) == []
        assert valid_points(42) == []

    def test_price_lookup_keeps_first_duplicate(self):
        """Test that the first price wins for a repeated timestamp."""
        series = [(T1, 1.0), (T1, 2.0), (T2, 3.0)]
        assert price_lookup(series) == {T1: 1.0, T2: 3.0}


class TestAlignStockData:
    """Tests for union-mode alignment."""

    def test_union_alignment_sorted(self):
        """Test union alignment returns prices in timestamp order."""
        data = {
            "AAPL": [(T3, 3.0), (T1, 1.0), (T2, 2.0)],
            "MSFT": [(T2, 20.0), (T4, 40.0)],
        }
        aligned = align_stock_data(data)
        assert aligned["AAPL"] == [1.0, 2.0, 3.0]
        assert aligned["MSFT"] == [20.0, 40.0]

    def test_drops_short_vectors(self):
        """Test that tickers with fewer than 2 points are dropped."""
        data = {
            "AAPL": [(T1, 1.0), (T2, 2.0)],
            "MSFT": [(T1, 10.0)],
        }
        aligned = align_stock_data(data)
        assert "MSFT" not in aligned
        assert list(aligned) == ["AAPL"]

    def test_empty_input(self):
        """Test union alignment of empty or missing input."""
        assert align_stock_data({}) == {}
        assert align_stock_data(None) == {}

    def test_input_not_modified(self):
        """Test that alignment leaves the input untouched."""
        data = {"AAPL": [(T2, 2.0), (T1, 1.0)]}
        align_stock_data(data)
        assert data == {"AAPL": [(T2, 2.0), (T1, 1.0)]}


class TestIntersection:
    """Tests for intersection-mode helpers."""

    def test_common_timestamps(self):
        """Test the sorted intersection of timestamps."""
        data = {
            "AAPL": [(T1, 1.0), (T2, 2.0), (T3, 3.0)],
            "MSFT": [(T3, 30.0), (T2, 20.0), (T4, 40.0)],
        }
        assert common_timestamps(data) == [T2, T3]

    def test_common_timestamps_requires_finite_price(self):
        """Test that a NaN price removes its timestamp from the intersection."""
        data = {
            "AAPL": [(T1, 1.0), (T2, 2.0), (T3, 3.0)],
            "MSFT": [(T1, 10.0), (T2, float("nan")), (T3, 30.0)],
        }
        assert common_timestamps(data) == [T1, T3]

    def test_common_timestamps_empty(self):
        """Test empty and disjoint inputs."""
        assert common_timestamps({}) == []
        assert common_timestamps({"A": [(T1, 1.0)], "B": [(T2, 2.0)]}) == []

    def test_aligned_vectors_equal_length(self):
        """Test that aligned vectors share the common grid."""
        data = {
            "AAPL": [(T3, 3.0), (T1, 1.0), (T2, 2.0)],
            "MSFT": [(T1, 10.0), (T3, 30.0), (T2, 20.0)],
        }
        timestamps = common_timestamps(data)
        aligned = aligned_vectors(data, timestamps)
        assert aligned == {"AAPL": [1.0, 2.0, 3.0], "MSFT": [10.0, 20.0, 30.0]}

    def test_aligned_vectors_missing_lookup_substitutes_zero(self):
        """Only reachable when the grid did not come from common_timestamps()."""
        data = {"AAPL": [(T1, 1.0)]}
        assert aligned_vectors(data, [T1, T2]) == {"AAPL": [1.0, 0.0]}

    def test_overlapping_tickers_excludes_isolated(self):
        """Test that a ticker sharing no timestamps is excluded."""
        data = {
            "AAPL": [(T1, 1.0), (T2, 2.0), (T3, 3.0)],
            "LONE": [("2024-03-02T14:30:00Z", 5.0), ("2024-03-02T14:31:00Z", 6.0)],
            "MSFT": [(T1, 10.0), (T2, 20.0), (T3, 30.0)],
        }
        assert overlapping_tickers(data) == ["AAPL", "MSFT"]

    def test_overlapping_tickers_requires_two_points(self):
        """Test that single-point tickers are not candidates."""
        data = {
            "AAPL": [(T1, 1.0), (T2, 2.0)],
            "ONE": [(T1, 5.0)],
        }
        assert overlapping_tickers(data) == ["AAPL"]

    def test_overlapping_tickers_no_overlap_at_all(self):
        """Test that two disjoint tickers are both excluded."""
        data = {
            "A": [(T1, 1.0), (T2, 2.0)],
            "B": [(T3, 1.0), (T4, 2.0)],
        }
        assert overlapping_tickers(data) == []


class TestFilterLookback:
    """Tests for filter_lookback()."""

    def test_keeps_trailing_window(self):
        """Test the inclusive window ending at the latest timestamp."""
        data = {
            "AAPL": [(T1, 1.0), (T2, 2.0), (T3, 3.0), (T4, 4.0)],
            "MSFT": [(T1, 10.0), (T4, 40.0)],
        }
        windowed = filter_lookback(data, minutes=2)
        assert windowed["AAPL"] == [(T2, 2.0), (T3, 3.0), (T4, 4.0)]
        assert windowed["MSFT"] == [(T4, 40.0)]

    def test_explicit_end(self):
        """Test windowing against an explicit end time."""
        data = {"AAPL": [(T1, 1.0), (T2, 2.0), (T3, 3.0), (T4, 4.0)]}
        windowed = filter_lookback(data, minutes=1, end=pd.Timestamp(T2))
        assert windowed["AAPL"] == [(T1, 1.0), (T2, 2.0)]

    def test_naive_timestamps_treated_as_utc(self):
        """Test that naive timestamps are read as UTC."""
        data = {"AAPL": [("2024-03-01T14:30:00", 1.0), ("2024-03-01T14:31:00", 2.0)]}
        windowed = filter_lookback(data, minutes=5, end="2024-03-01T14:32:00Z")
        assert len(windowed["AAPL"]) == 2

    def test_drops_unparseable_and_malformed(self):
        """Test that unparseable timestamps and bad prices are dropped."""
        data = {"AAPL": [("not a date", 1.0), (T1, float("nan")), (T2, 2.0)]}
        windowed = filter_lookback(data, minutes=10)
        assert windowed["AAPL"] == [(T2, 2.0)]

    def test_preserves_original_entries(self):
        """Test that the original entry objects are returned."""
        point = PricePoint(T1, 1.0)
        windowed = filter_lookback({"AAPL": [point]}, minutes=1)
        assert windowed["AAPL"][0] is point

    def test_no_valid_points(self):
        """Test a ticker with no points."""
        assert filter_lookback({"AAPL": []}, minutes=5) == {"AAPL": []}

    def test_non_positive_minutes_raises(self):
        """Test that a zero window is rejected."""
        with pytest.raises(ValueError, match="minutes must be positive"):
            filter_lookback({"AAPL": [(T1, 1.0)]}, minutes=0)

    def test_week_of_minute_bars(self):
        """Test that a week of minute bars per ticker is trimmed to the inclusive window."""
        stamps = pd.date_range("2024-03-04 00:00", periods=7 * 24 * 60, freq="min", tz="UTC")
        iso = stamps.strftime("%Y-%m-%dT%H:%M:%SZ")
        data = {
            ticker: [{"timestamp": t, "price": 100.0 + i % 50} for i, t in enumerate(iso)]
            for ticker in ("AAPL", "MSFT", "GOOGL")
        }

        windowed = filter_lookback(data, minutes=390)

        for ticker in data:
            assert len(windowed[ticker]) == 391
            assert windowed[ticker][0]["timestamp"] == iso[-391]
            assert windowed[ticker][-1]["timestamp"] == iso[-1]
