"""
Caching service with TTL support.
Keeps Canvas responses in process memory between warm invocations.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple


logger = logging.getLogger(__name__)


class TTLCache:
    """
    Thread-safe TTL (Time-To-Live) cache implementation.
    The TTL is supplied on read so one cache can serve several endpoints.
    """

    def __init__(self, max_size: int = 100):
        """Initialize cache with maximum size."""
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._max_size = max_size
        self._lock = threading.RLock()

    def get(self, key: str, ttl: int) -> Optional[Any]:
        """
        Get cached value if it exists and hasn't expired.

        Args:
            key: Cache key
            ttl: Time-to-live in seconds

        Returns:
            Cached value or None if expired/missing
        """
        with self._lock:
            if key not in self._cache:
                return None

            value, timestamp = self._cache[key]

            if time.time() - timestamp > ttl:
                del self._cache[key]
                return None

            logger.debug(f"Cache hit for key: {key}")
            return value

    def set(self, key: str, value: Any) -> None:
        """
        Set cached value with current timestamp.

        Args:
            key: Cache key
            value: Value to cache
        """
        with self._lock:
            self._cache[key] = (value, time.time())

            if len(self._cache) > self._max_size:
                oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
                del self._cache[oldest_key]
                logger.debug(f"Cache evicted oldest entry: {oldest_key}")

            logger.debug(f"Cache set for key: {key}")

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            cleared_count = len(self._cache)
            self._cache.clear()
            logger.info(f"Cache cleared - removed {cleared_count} entries")

    def size(self) -> int:
        """Get current cache size."""
        with self._lock:
            return len(self._cache)

    def stats(self, ttl: int) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            now = time.time()
            expired_count = sum(
                1 for _, timestamp in self._cache.values() if now - timestamp > ttl
            )
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "expired_entries": expired_count,
            }


# Global cache instances, one per Canvas resource
courses_cache = TTLCache()
assignments_cache = TTLCache()
announcements_cache = TTLCache()


def generate_cache_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Build a cache key from the endpoint name and its parameters.
    Parameters are sorted and None values dropped so equivalent requests share a key.
    """
    params = params or {}
    sorted_params = "&".join(
        f"{key}={value}"
        for key, value in sorted(params.items())
        if value is not None
    )
    return f"{endpoint}:{sorted_params}"


def clear_all_caches() -> Dict[str, int]:
    """
    Clear all caches and return statistics.
    Used by the refresh and cache management endpoints.
    """
    courses_size = courses_cache.size()
    assignments_size = assignments_cache.size()
    announcements_size = announcements_cache.size()

    courses_cache.clear()
    assignments_cache.clear()
    announcements_cache.clear()

    return {
        "courses_cleared": courses_size,
        "assignments_cleared": assignments_size,
        "announcements_cleared": announcements_size,
        "total_cleared": courses_size + assignments_size + announcements_size,
    }


def get_cache_stats(
    courses_ttl: int, assignments_ttl: int, announcements_ttl: int
) -> Dict[str, Any]:
    """Get comprehensive cache statistics."""
    return {
        "courses_cache": courses_cache.stats(courses_ttl),
        "assignments_cache": assignments_cache.stats(assignments_ttl),
        "announcements_cache": announcements_cache.stats(announcements_ttl),
    }
