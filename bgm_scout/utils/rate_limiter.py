from __future__ import annotations

import time
import threading


class RateLimiter:
    """Fixed-interval throttle between sequential API calls.

    The first call passes immediately; each later call waits until
    ``min_interval`` seconds have elapsed since the previous one.
    """

    def __init__(self, min_interval: float, sleep=time.sleep, clock=time.monotonic):
        self.min_interval = max(0.0, float(min_interval))
        self._sleep = sleep
        self._clock = clock
        self.last_request = None
        self.wait_count = 0
        self._lock = threading.Lock()

    def wait_if_needed(self):
        """Block until the interval since the last call has passed."""
        with self._lock:
            if self.last_request is not None and self.min_interval > 0:
                elapsed = self._clock() - self.last_request
                if elapsed < self.min_interval:
                    self._sleep(self.min_interval - elapsed)
                    self.wait_count += 1
            self.last_request = self._clock()
