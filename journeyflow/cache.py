"""Small thread-safe TTL cache."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from .contracts import utcnow

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Thread-safe TTL cache evicting the oldest entry when full."""

    def __init__(
        self,
        ttl: float = 300.0,
        max_entries: int = 1000,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = timedelta(seconds=ttl)
        self.max_entries = max_entries
        self._now = now
        self._cache: Dict[Hashable, Tuple[V, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[V]:
        """Get cached value if not expired."""
        with self._lock:
            if key not in self._cache:
                return None

            value, cached_at = self._cache[key]
            if self._now() - cached_at > self.ttl:
                del self._cache[key]
                return None

            return value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_entries:
                oldest = min(self._cache, key=lambda k: self._cache[k][1])
                del self._cache[oldest]

            self._cache[key] = (value, self._now())

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
