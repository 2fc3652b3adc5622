"""Thread-safe rate limiting for provider calls."""

import os
import threading
import time

from ..logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Spaces calls at least 1/rate seconds apart, across threads.

    A rate of 0 or less disables limiting.
    """

    def __init__(self, calls_per_second: float = None):
        if calls_per_second is None:
            calls_per_second = float(os.getenv("EMBED_RATE_PER_SECOND", "5"))
        self.calls_per_second = calls_per_second
        self.min_interval = 1.0 / calls_per_second if calls_per_second > 0 else 0.0
        self._next_slot = 0.0
        self._lock = threading.Lock()

    def acquire(self) -> float:
        """Block until the next call is allowed.

        Returns:
            Seconds spent waiting
        """
        if self.min_interval <= 0:
            return 0.0

        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval

        wait = slot - now
        if wait > 0:
            time.sleep(wait)
        return wait
