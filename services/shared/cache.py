"""Short-lived in-memory cache for hot collections (staff roster, ...).

Entries expire after a configurable TTL and are invalidated explicitly by the
change bus whenever the underlying collection is mutated.
"""

from __future__ import annotations

import os
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

# Cache key prefixes
STAFF_CACHE_PREFIX = "staff:"


class CollectionCache:
    """Thread-safe TTL cache keyed by string.

    Args:
        ttl: Time to live in seconds
        clock: Monotonic time source, injectable for tests
    """

    def __init__(self, ttl: float = 5.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self._ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def invalidate(self, key: Optional[str] = None) -> bool:
        """Drop one key, or everything when ``key`` is None.

        Returns:
            True if something was removed
        """
        with self._lock:
            if key is None:
                removed = bool(self._entries)
                self._entries.clear()
                return removed
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                del self._entries[key]
            return len(keys)


def get_cache_ttl(ttl_type: str, default: float = 5.0) -> float:
    """Read a cache TTL from ``CACHE_TTL_<TYPE>``.

    Args:
        ttl_type: Kind of cache (``staff``)
        default: Fallback in seconds

    Returns:
        TTL in seconds
    """
    env_var = f"CACHE_TTL_{ttl_type.upper()}"
    ttl_str = os.getenv(env_var)

    if ttl_str:
        try:
            return float(ttl_str)
        except ValueError:
            pass

    return default
