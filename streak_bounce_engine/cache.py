from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

class TTLCache:
    """Small in-memory cache with a single time-to-live for every entry.

    Owned by the calling layer (HTTP server, CLI); the analytics never cache.
    """

    def __init__(self, ttl_sec: float, clock: Callable[[], float] = time.time):
        self.ttl_sec = float(ttl_sec)
        self._clock = clock
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str, allow_stale: bool = False) -> Optional[Any]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            ts, value = item
            if not allow_stale and self._clock() - ts >= self.ttl_sec:
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = (self._clock(), value)

    def age(self, key: str) -> Optional[float]:
        """Seconds since `key` was stored, or None."""
        with self._lock:
            item = self._data.get(key)
            return None if item is None else self._clock() - item[0]

    def is_fresh(self, key: str) -> bool:
        a = self.age(key)
        return a is not None and a < self.ttl_sec

    def clear(self) -> int:
        with self._lock:
            n = len(self._data)
            self._data.clear()
            return n

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
