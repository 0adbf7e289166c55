from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

class RateLimiter:
    """Keeps successive provider calls at least `min_interval` seconds apart.

    Clock and sleep are injectable so tests never block. The first call is
    never delayed.
    """

    def __init__(
        self,
        min_interval: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last: Optional[float] = None

    def wait(self) -> float:
        """Block until the next call is allowed; return the seconds slept."""
        with self._lock:
            now = self._clock()
            waited = 0.0
            if self._last is not None:
                remaining = self.min_interval - (now - self._last)
                if remaining > 0:
                    logging.debug("rate limiter: waiting %.2fs", remaining)
                    self._sleep(remaining)
                    waited = remaining
                    now = self._clock()
            self._last = now
            return waited
