"""
Fixed-delay rate limiter for generation service calls.

Enrichment is strictly sequential, so the limiter only has to put a fixed
pause between consecutive calls. It is not adaptive and ignores any
rate-limit headers the service returns.

Usage:
    limiter = RateLimiter(delay=1.0)
    for record in records:
        limiter.wait()      # no-op before the first call
        enrich(record)
"""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-delay throttle.

    The first `wait()` returns immediately; every later call sleeps for the
    full `delay`, so no pause happens before the first or after the last call.
    """

    def __init__(self, delay: float, sleep: Callable[[float], None] = time.sleep):
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.delay = delay
        self._sleep = sleep
        self._calls = 0
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Pause before the next request.

        Returns:
            Time waited in seconds (0 for the first call)
        """
        with self._lock:
            self._calls += 1
            if self._calls == 1 or self.delay == 0:
                return 0.0
            logger.debug(f"Applying rate limit: waiting {self.delay:.2f}s before next request")
            self._sleep(self.delay)
            return self.delay

    @property
    def calls(self) -> int:
        return self._calls

    def reset(self):
        """Start a new batch: the next wait() returns immediately."""
        with self._lock:
            self._calls = 0
