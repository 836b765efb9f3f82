"""
Chart generation for reports.

This module creates matplotlib charts for correlation matrices and
normalized price paths.
"""

from pathlib import Path
from typing import Mapping
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from comovement.entities import CorrelationResult
from comovement.analytics.alignment import valid_points


def plot_correlation_heatmap(result: CorrelationResult, save_path: str) -> None:
    """
    Plot the correlation matrix as an annotated heatmap.

    Args:
        result: Non-empty CorrelationResult
        save_path: Path to save chart

    Raises:
        ValueError: If the result is empty
    """
    if result.is_empty:
        raise ValueError("cannot plot an empty correlation result")

    n = len(result.tickers)
    matrix = np.asarray(result.matrix, dtype=float)
    size = max(4, 1.2 * n + 2)
    fig, ax = plt.subplots(figsize=(size, size * 0.85))

    image = ax.imshow(matrix, cmap="RdBu_r", vmin=-1, vmax=1)
    fig.colorbar(image, ax=ax, label="Pearson correlation")

    ax.set_xticks(np.arange(n))
    ax.set_yticks(np.arange(n))
    ax.set_xticklabels(result.tickers, rotation=45, ha="right")
    ax.set_yticklabels(result.tickers)

    for i in range(n):
        for j in range(n):
            value = matrix[i, j]
            color = "white" if abs(value) > 0.6 else "black"
            ax.text(j, i, f"{value:.2f}", ha="center", va="center", color=color, fontsize=9)

    ax.set_title(f"Correlation Matrix ({result.data_points} common points)")

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close()


def plot_normalized_prices(stocks_data: Mapping, save_path: str) -> None:
    """
    Plot each series as percentage change from its first price.

    Args:
        stocks_data: Mapping of ticker -> price series
        save_path: Path to save chart
    """
    fig, ax = plt.subplots(figsize=(12, 6))

    for ticker, series in stocks_data.items():
        points = sorted(valid_points(series), key=lambda p: p[0])
        if len(points) < 2 or points[0][1] == 0:
            continue
        index = pd.to_datetime([ts for ts, _ in points], utc=True, errors="coerce")
        prices = np.array([price for _, price in points])
        pct = (prices / prices[0] - 1) * 100
        mask = ~index.isna()
        ax.plot(index[mask], pct[mask], label=ticker, linewidth=1.5)

    ax.axhline(y=0, color="black", linestyle="--", alpha=0.3)
    ax.set_xlabel("Time (UTC)")
    ax.set_ylabel("Change (%)")
    ax.set_title("Normalized Price Paths")
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close()


def create_report_assets_dir(report_dir: Path) -> Path:
    """Create (if needed) and return the assets directory for report charts."""
    assets_dir = report_dir / "assets"
    assets_dir.mkdir(parents=True, exist_ok=True)
    return assets_dir
