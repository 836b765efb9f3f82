"""
Disk cache for downloaded price series.

Intraday prices go stale quickly, so entries carry a time-to-live measured
from the file's modification time.
"""

import hashlib
import json
import logging
import pickle
import time
from pathlib import Path
from typing import Any, Optional
from comovement.errors import CacheError

logger = logging.getLogger(__name__)


class DataCache:
    """
    A disk-based cache keyed by a hash of the query parameters.

    Representation Invariants:
        - cache_dir exists and is a directory
        - cache files are named <md5 of sorted JSON params>.pkl
        - ttl_seconds is None (never expire) or > 0
    """

    def __init__(self, cache_dir: str = ".cache", ttl_seconds: Optional[float] = None):
        """
        Initialize the cache.

        Args:
            cache_dir: Directory to store entries in (created if missing)
            ttl_seconds: Entry lifetime; None keeps entries forever
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds

    def _compute_hash(self, query_params: dict) -> str:
        sorted_params = json.dumps(query_params, sort_keys=True, default=str)
        return hashlib.md5(sorted_params.encode()).hexdigest()

    def _path(self, query_params: dict) -> Path:
        return self.cache_dir / f"{self._compute_hash(query_params)}.pkl"

    def _is_expired(self, cache_file: Path) -> bool:
        if self.ttl_seconds is None:
            return False
        return time.time() - cache_file.stat().st_mtime > self.ttl_seconds

    def get(self, query_params: dict) -> Optional[Any]:
        """
        Retrieve cached data.

        Returns:
            Cached object, or None on a miss or an expired entry

        Raises:
            CacheError: If the cache file exists but cannot be read
        """
        cache_file = self._path(query_params)
        if not cache_file.exists():
            return None
        if self._is_expired(cache_file):
            logger.debug("Cache entry expired: %s", cache_file.name)
            return None

        try:
            with open(cache_file, "rb") as f:
                data = pickle.load(f)
        except Exception as e:
            raise CacheError(f"Failed to read cache file: {e}") from e
        logger.info("Cache hit for %s", query_params)
        return data

    def set(self, query_params: dict, data: Any) -> None:
        """
        Store data under the given query parameters.

        Raises:
            CacheError: If the entry cannot be written
        """
        cache_file = self._path(query_params)
        try:
            with open(cache_file, "wb") as f:
                pickle.dump(data, f)
        except Exception as e:
            raise CacheError(f"Failed to write cache file: {e}") from e

    def exists(self, query_params: dict) -> bool:
        """Return True if a live (non-expired) entry exists."""
        cache_file = self._path(query_params)
        return cache_file.exists() and not self._is_expired(cache_file)

    def clear(self) -> None:
        """Remove all cache entries."""
        for cache_file in self.cache_dir.glob("*.pkl"):
            cache_file.unlink()
