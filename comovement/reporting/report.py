"""
Markdown report generation.

This module assembles a correlation result and per-series summaries into a
markdown report with charts.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple
from comovement.entities import CorrelationResult, SeriesSummary
from comovement.formatting import format_currency, format_number, format_percentage
from comovement.reporting.charts import (
    plot_correlation_heatmap, plot_normalized_prices, create_report_assets_dir
)

logger = logging.getLogger(__name__)


def ranked_pairs(result: CorrelationResult) -> List[Tuple[str, str, float]]:
    """
    List every distinct ticker pair with its correlation.

    Returns:
        (ticker1, ticker2, correlation) tuples sorted by correlation, highest first
    """
    pairs = []
    for i in range(len(result.tickers)):
        for j in range(i + 1, len(result.tickers)):
            pairs.append((result.tickers[i], result.tickers[j], result.matrix[i][j]))
    return sorted(pairs, key=lambda p: p[2], reverse=True)


def describe_strength(correlation: float) -> str:
    """Qualitative label for a correlation coefficient."""
    magnitude = abs(correlation)
    if magnitude >= 0.7:
        strength = "Strong"
    elif magnitude >= 0.3:
        strength = "Moderate"
    else:
        return "Weak"
    return f"{strength} {'positive' if correlation > 0 else 'negative'}"


class Report:
    """
    Generates markdown correlation reports.
    """

    def __init__(self, output_dir: str = "reports"):
        """
        Initialize report generator.

        Args:
            output_dir: Directory to save reports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def generate_report(
        self,
        result: CorrelationResult,
        summaries: Optional[Dict[str, SeriesSummary]] = None,
        stocks_data: Optional[Mapping] = None,
        minutes: Optional[int] = None,
        requested: Optional[List[str]] = None
    ) -> str:
        """
        Generate complete markdown report.

        Args:
            result: Correlation result to report on
            summaries: Optional per-ticker summaries
            stocks_data: Optional raw series, used for the price chart
            minutes: Lookback window the data was fetched for
            requested: Tickers originally requested (to list exclusions)

        Returns:
            Path to generated report file
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        name = "-".join(result.tickers) if result.tickers else "empty"
        report_path = self.output_dir / f"correlation_{name}_{timestamp}.md"

        assets_dir = create_report_assets_dir(self.output_dir)

        content = self._generate_header(result, minutes, requested)
        content += self._generate_matrix_section(result, assets_dir)
        content += self._generate_pairs_section(result)
        content += self._generate_summary_section(summaries or {}, stocks_data, assets_dir)
        content += self._generate_footer()

        with open(report_path, "w") as f:
            f.write(content)

        logger.info("Wrote report %s", report_path)
        return str(report_path)

    def _generate_header(
        self,
        result: CorrelationResult,
        minutes: Optional[int],
        requested: Optional[List[str]]
    ) -> str:
        generated = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        header = "# Correlation Report\n\n"
        header += f"**Tickers:** {', '.join(result.tickers) or 'none'}  \n"
        if minutes is not None:
            header += f"**Lookback:** {minutes} minutes  \n"
        header += f"**Common data points:** {result.data_points}  \n"
        header += f"**Generated:** {generated}\n\n"

        if requested:
            excluded = [t for t in requested if t not in result.tickers]
            if excluded:
                header += f"**Excluded (insufficient overlapping data):** {', '.join(excluded)}\n\n"

        return header + "---\n\n"

    def _generate_matrix_section(self, result: CorrelationResult, assets_dir: Path) -> str:
        section = "## Correlation Matrix\n\n"

        if result.is_empty:
            section += "*Not enough overlapping data to compute correlations "
            section += "(fewer than 2 common timestamps).*\n\n---\n\n"
            return section

        section += "| |" + "".join(f" {t} |" for t in result.tickers) + "\n"
        section += "|---|" + "---|" * len(result.tickers) + "\n"
        for ticker, row in zip(result.tickers, result.matrix):
            section += f"| **{ticker}** |" + "".join(f" {format_number(v)} |" for v in row) + "\n"
        section += "\n"

        section += "### Standard Deviation of Prices\n\n"
        section += "| Ticker | Std Dev |\n|--------|---------|\n"
        for ticker in result.tickers:
            section += f"| {ticker} | {format_number(result.standard_deviations[ticker], 4)} |\n"
        section += "\n"

        try:
            plot_correlation_heatmap(result, str(assets_dir / "correlation_heatmap.png"))
            section += "![Correlation Heatmap](assets/correlation_heatmap.png)\n\n"
        except (ValueError, OSError) as e:
            logger.warning("Could not render heatmap: %s", e)

        return section + "---\n\n"

    def _generate_pairs_section(self, result: CorrelationResult) -> str:
        pairs = ranked_pairs(result)
        if not pairs:
            return ""

        section = "## Pairs\n\n"
        section += "| Pair | Correlation | Interpretation |\n"
        section += "|------|-------------|----------------|\n"
        for t1, t2, corr in pairs:
            section += f"| {t1}-{t2} | {format_number(corr, 3)} | {describe_strength(corr)} |\n"
        return section + "\n---\n\n"

    def _generate_summary_section(
        self,
        summaries: Dict[str, SeriesSummary],
        stocks_data: Optional[Mapping],
        assets_dir: Path
    ) -> str:
        if not summaries:
            return ""

        section = "## Series Summary\n\n"
        section += "| Ticker | Latest | Change | Change % | High | Low | Volatility | Points |\n"
        section += "|--------|--------|--------|----------|------|-----|------------|--------|\n"
        for ticker, s in summaries.items():
            section += (
                f"| {ticker} | {format_currency(s.latest)} | {format_number(s.change)} "
                f"| {format_percentage(s.change_percent)} | {format_currency(s.high)} "
                f"| {format_currency(s.low)} | {format_number(s.volatility, 4)} | {s.data_points} |\n"
            )
        section += "\n"

        if stocks_data:
            try:
                plot_normalized_prices(stocks_data, str(assets_dir / "normalized_prices.png"))
                section += "![Normalized Prices](assets/normalized_prices.png)\n\n"
            except (ValueError, OSError) as e:
                logger.warning("Could not render price chart: %s", e)

        return section + "---\n\n"

    def _generate_footer(self) -> str:
        return """
## Methodology Notes

- Series are aligned on the timestamps every retained ticker has a price for
  (exact timestamp match, no interpolation)
- Tickers with no overlap with the others are excluded
- Pearson correlation of prices; a constant series has correlation 0
- Standard deviation is the population formula (divides by N)

---

*Report generated by comovement*
"""
