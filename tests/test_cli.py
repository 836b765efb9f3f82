"""
Tests for the command-line interface.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import patch
from comovement.cli import main
from comovement.entities import PricePoint
from comovement.errors import DataError

STAMPS = [f"2024-03-01T14:{m:02d}:00Z" for m in range(4)]


def write_input(tmpdir):
    data = {
        "AAPL": [{"timestamp": t, "price": p} for t, p in zip(STAMPS, [100, 102, 101, 103])],
        "GOOGL": [{"timestamp": t, "price": p} for t, p in zip(STAMPS, [200, 204, 202, 206])],
    }
    path = Path(tmpdir) / "prices.json"
    path.write_text(json.dumps(data))
    return str(path)


class TestCLI:
    """Tests for main()."""

    def test_no_command_prints_help(self, capsys):
        """Test that running without a command prints usage."""
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_correlate_from_file(self, capsys):
        """Test correlate with a JSON input file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            code = main(["correlate", "--input", write_input(tmpdir)])
        out = capsys.readouterr().out
        assert code == 0
        assert "Correlation matrix (4 common points)" in out
        assert "GOOGL" in out

    def test_correlate_json_output(self, capsys):
        """Test the --json flag."""
        with tempfile.TemporaryDirectory() as tmpdir:
            main(["correlate", "--input", write_input(tmpdir), "--json"])
        out = capsys.readouterr().out
        assert '"dataPoints": 4' in out

    def test_correlate_insufficient_data(self, capsys):
        """Test the exit code when there is not enough data."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "prices.json"
            path.write_text(json.dumps({"AAPL": [{"timestamp": STAMPS[0], "price": 1}]}))
            code = main(["correlate", "--input", str(path)])
        assert code == 1
        assert "Not enough overlapping data" in capsys.readouterr().out

    def test_correlate_with_report(self, capsys, monkeypatch):
        """Test that --report writes a markdown file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.setenv("COMOVEMENT_REPORT_DIR", str(Path(tmpdir) / "reports"))
            code = main(["correlate", "--input", write_input(tmpdir), "--report"])
            assert code == 0
            assert list((Path(tmpdir) / "reports").glob("correlation_*.md"))

    def test_report_from_file_without_minutes_has_no_lookback(self, capsys, monkeypatch):
        """Test that a file-based report does not claim the default lookback window."""
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.setenv("COMOVEMENT_REPORT_DIR", str(Path(tmpdir) / "reports"))
            code = main(["correlate", "--input", write_input(tmpdir), "--report"])
            report_path = next((Path(tmpdir) / "reports").glob("correlation_*.md"))
            content = report_path.read_text()
        assert code == 0
        assert "Lookback" not in content

    def test_report_from_file_with_minutes_shows_lookback(self, capsys, monkeypatch):
        """Test that an explicit --minutes is reported for file input."""
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.setenv("COMOVEMENT_REPORT_DIR", str(Path(tmpdir) / "reports"))
            main(["correlate", "--input", write_input(tmpdir), "--minutes", "10", "--report"])
            report_path = next((Path(tmpdir) / "reports").glob("correlation_*.md"))
            content = report_path.read_text()
        assert "**Lookback:** 10 minutes" in content

    @patch("comovement.cli.get_price_series")
    def test_correlate_downloads(self, mock_get, capsys, monkeypatch):
        """Test correlate with downloaded data."""
        mock_get.return_value = {
            "AAPL": [PricePoint(t, p) for t, p in zip(STAMPS, [1.0, 2.0, 3.0, 4.0])],
            "MSFT": [PricePoint(t, p) for t, p in zip(STAMPS, [4.0, 3.0, 2.0, 1.0])],
        }
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.setenv("COMOVEMENT_CACHE_DIR", tmpdir)
            code = main(["correlate", "aapl", "msft", "--minutes", "30"])
        assert code == 0
        args, kwargs = mock_get.call_args
        assert args == (["AAPL", "MSFT"], 30)
        assert "-1.0" in capsys.readouterr().out

    @patch("comovement.cli.get_price_series")
    def test_download_error(self, mock_get, capsys, monkeypatch):
        """Test that download errors are reported on stderr."""
        mock_get.side_effect = DataError("No data returned for any ticker in ['ZZZZ']")
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.setenv("COMOVEMENT_CACHE_DIR", tmpdir)
            code = main(["correlate", "ZZZZ"])
        assert code == 1
        assert "No data returned" in capsys.readouterr().err

    def test_missing_input_file(self, capsys):
        """Test a missing --input file."""
        assert main(["correlate", "--input", "/nonexistent.json"]) == 1
        assert "Input file not found" in capsys.readouterr().err

    def test_no_tickers_or_input(self, capsys):
        """Test correlate without tickers or input."""
        assert main(["correlate"]) == 1
        assert "Provide tickers or --input" in capsys.readouterr().err

    def test_invalid_minutes(self, capsys):
        """Test that non-positive --minutes is rejected."""
        assert main(["summary", "AAPL", "--minutes", "0"]) == 1

    def test_summary_from_file(self, capsys):
        """Test the summary command with a JSON input file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            code = main(["summary", "--input", write_input(tmpdir)])
        out = capsys.readouterr().out
        assert code == 0
        assert "AAPL: $103.00 (+3.00%)" in out
