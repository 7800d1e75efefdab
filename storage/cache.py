"""
Key-value cache with per-key expiry.

Backs the per-domain rate-limit windows. State is process-local; a
restart starts with an empty cache.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class MemoryCache:
    """Thread-safe in-memory cache. Expired keys are dropped on access."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value; ttl in seconds, None keeps it until deleted."""
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, exp in self._data.values() if exp is None or now < exp)
