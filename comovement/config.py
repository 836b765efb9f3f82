"""
Runtime configuration.

Settings come from defaults, then an optional YAML file, then
COMOVEMENT_* environment variables (highest precedence).
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional
import yaml
from comovement.errors import ConfigError

ENV_PREFIX = "COMOVEMENT_"
CONFIG_ENV_VAR = "COMOVEMENT_CONFIG"

DEFAULT_STOCKS = {
    "AAPL": "Apple Inc.",
    "MSFT": "Microsoft Corporation",
    "GOOGL": "Alphabet Inc.",
    "AMZN": "Amazon.com Inc.",
    "NVDA": "NVIDIA Corporation",
    "META": "Meta Platforms Inc.",
    "TSLA": "Tesla Inc.",
    "JPM": "JPMorgan Chase & Co.",
    "SPY": "SPDR S&P 500 ETF Trust",
    "QQQ": "Invesco QQQ Trust",
}


@dataclass(frozen=True)
class Settings:
    """
    Application settings.

    Attributes:
        cache_dir: Directory for the download cache
        report_dir: Directory for generated reports
        default_minutes: Lookback window used when none is requested
        interval: yfinance bar interval for price downloads
        max_tickers: Maximum tickers per request
        workers: Threads used for the pairwise correlation loop
        log_level: Logging level name for the CLI and web server
        stocks: Watchlist of ticker -> company name

    Representation Invariants:
        - default_minutes > 0, max_tickers > 0, workers >= 1
    """
    cache_dir: str = ".cache"
    report_dir: str = "reports"
    default_minutes: int = 60
    interval: str = "1m"
    max_tickers: int = 50
    workers: int = 1
    log_level: str = "WARNING"
    stocks: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STOCKS))

    def __post_init__(self):
        if self.default_minutes <= 0:
            raise ConfigError("default_minutes must be positive")
        if self.max_tickers <= 0:
            raise ConfigError("max_tickers must be positive")
        if self.workers < 1:
            raise ConfigError("workers must be at least 1")
        if not self.stocks:
            raise ConfigError("stocks watchlist cannot be empty")


def _coerce(name: str, raw, target_type):
    if target_type is int or target_type == "int":
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    return str(raw)


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Load settings from YAML and environment overrides.

    Args:
        path: Optional YAML config path (defaults to $COMOVEMENT_CONFIG)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Settings

    Raises:
        ConfigError: If the file is unreadable or a value is invalid
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get(CONFIG_ENV_VAR)

    values = {}
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(config_path) as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        values.update(loaded)

    known = {f.name: f.type for f in fields(Settings)}
    unknown = set(values) - set(known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    for name, field_type in known.items():
        if name == "stocks":
            continue
        env_value = environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = env_value
        if name in values:
            values[name] = _coerce(name, values[name], field_type)

    if "stocks" in values:
        stocks = values["stocks"]
        if not isinstance(stocks, dict):
            raise ConfigError("stocks must be a mapping of ticker -> name")
        values["stocks"] = {str(k).upper(): str(v) for k, v in stocks.items()}

    return replace(Settings(), **values)
