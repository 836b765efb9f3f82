"""Custom exceptions for the comovement package."""


class ComovementError(Exception):
    """Base exception for comovement errors."""
    pass


class DataError(ComovementError):
    """Raised when price data cannot be fetched or nothing is returned."""
    pass


class CacheError(ComovementError):
    """Raised when caching operations fail."""
    pass


class ConfigError(ComovementError):
    """Raised when configuration values are missing or invalid."""
    pass
