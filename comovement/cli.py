"""
Command-line interface for the correlation tool.

This module provides CLI commands for computing correlation matrices and
per-series summaries, either from live yfinance data or from a JSON file
of price series.
"""

import argparse
import json
import logging
import sys
import warnings
from pathlib import Path
from typing import Dict, List, Optional
import pandas as pd

# Suppress yfinance warnings about intraday data (expected behavior)
warnings.filterwarnings("ignore", message=".*1m data not available.*")
warnings.filterwarnings("ignore", message=".*possibly delisted.*")

from comovement.analytics.alignment import filter_lookback
from comovement.analytics.correlation import CorrelationEngine
from comovement.analytics.summary import summarize_all
from comovement.cache import DataCache
from comovement.config import Settings, load_settings
from comovement.data_sources.prices import get_price_series
from comovement.errors import ComovementError
from comovement.formatting import format_currency, format_number, format_percentage
from comovement.reporting.report import Report

CACHE_TTL_SECONDS = 60


def load_series_file(path: str) -> Dict[str, list]:
    """
    Load a {ticker: [{"timestamp": ..., "price": ...}, ...]} JSON file.

    Raises:
        ComovementError: If the file is missing or not a JSON object
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ComovementError(f"Input file not found: {path}")
    try:
        with open(file_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ComovementError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ComovementError(f"{path} must contain an object of ticker -> series")
    return data


def _load_data(args, settings: Settings) -> Dict[str, list]:
    minutes = args.minutes or settings.default_minutes

    if args.input:
        print(f"Loading price series from {args.input}...")
        data = load_series_file(args.input)
        if args.tickers:
            data = {t: data[t] for t in args.tickers if t in data}
        if args.minutes:
            data = filter_lookback(data, minutes)
        return data

    if not args.tickers:
        raise ComovementError("Provide tickers or --input")

    print(f"Downloading {minutes} minutes of prices for {', '.join(args.tickers)}...")
    cache = DataCache(settings.cache_dir, ttl_seconds=CACHE_TTL_SECONDS)
    return get_price_series(args.tickers, minutes, interval=settings.interval, cache=cache)


def correlate_command(args, settings: Settings) -> int:
    """Compute and print the correlation matrix."""
    data = _load_data(args, settings)
    workers = args.workers or settings.workers

    result = CorrelationEngine(workers=workers).compute(data)

    if result.is_empty:
        print("Not enough overlapping data to compute correlations.")
        return 1

    requested = args.tickers or list(data.keys())
    excluded = [t for t in requested if t not in result.tickers]
    if excluded:
        print(f"  Excluded (insufficient overlap): {', '.join(excluded)}")

    matrix_df = pd.DataFrame(result.matrix, index=result.tickers, columns=result.tickers)
    print(f"\nCorrelation matrix ({result.data_points} common points):")
    print(matrix_df.round(3).to_string())

    print("\nStandard deviations:")
    for ticker in result.tickers:
        print(f"  {ticker}: {format_number(result.standard_deviations[ticker], 4)}")

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))

    if args.report:
        report = Report(output_dir=settings.report_dir)
        path = report.generate_report(
            result,
            summaries=summarize_all(data),
            stocks_data=data,
            minutes=args.minutes if args.input else (args.minutes or settings.default_minutes),
            requested=requested,
        )
        print(f"\nReport saved to {path}")

    return 0


def summary_command(args, settings: Settings) -> int:
    """Print per-series summary statistics."""
    data = _load_data(args, settings)
    summaries = summarize_all(data)

    if not summaries:
        print("No valid price data.")
        return 1

    for ticker, s in summaries.items():
        print(
            f"  {ticker}: {format_currency(s.latest)} "
            f"({format_percentage(s.change_percent)}), "
            f"high {format_currency(s.high)}, low {format_currency(s.low)}, "
            f"volatility {format_number(s.volatility, 4)}, {s.data_points} points"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comovement",
        description="Stock correlation analysis"
    )
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def add_data_args(sub):
        sub.add_argument("tickers", nargs="*", help="Ticker symbols")
        sub.add_argument("--minutes", type=int, help="Lookback window in minutes")
        sub.add_argument("--input", help="JSON file of price series instead of downloading")

    corr_parser = subparsers.add_parser("correlate", help="Compute the correlation matrix")
    add_data_args(corr_parser)
    corr_parser.add_argument("--workers", type=int, help="Threads for the pairwise loop")
    corr_parser.add_argument("--report", action="store_true", help="Write a markdown report")
    corr_parser.add_argument("--json", action="store_true", help="Also print the result as JSON")

    summary_parser = subparsers.add_parser("summary", help="Summarize each price series")
    add_data_args(summary_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config)
    except ComovementError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.DEBUG if args.verbose else settings.log_level)

    if args.minutes is not None and args.minutes <= 0:
        print("Error: --minutes must be positive", file=sys.stderr)
        return 1
    if getattr(args, "workers", None) is not None and args.workers < 1:
        print("Error: --workers must be at least 1", file=sys.stderr)
        return 1

    args.tickers = [t.strip().upper() for t in args.tickers]

    commands = {
        "correlate": correlate_command,
        "summary": summary_command,
    }
    try:
        return commands[args.command](args, settings)
    except ComovementError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
