"""
Interval based admission control for the worker pool.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class IntervalRateLimiter:
    """
    Fixed-window rate limiter.  Allows at most ``cap`` acquisitions in every
    ``interval`` seconds; further callers sleep until the next window opens.
    The limiter gates *admission* only, it knows nothing about how many of the
    admitted tasks are still running.
    """

    def __init__(
        self,
        cap: int,
        interval: float,
        *,
        time_fn: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        if cap <= 0:
            raise ValueError("cap must be greater than 0")
        if interval <= 0:
            raise ValueError("interval must be greater than 0")
        self.cap = cap
        self.interval = float(interval)
        self._time_fn = time_fn
        self._sleep_fn = sleep_fn
        self._lock = threading.Lock()
        self._window_start: Optional[float] = None
        self._count = 0

    def acquire(self, stop: Optional[threading.Event] = None) -> bool:
        """
        Block until an admission is granted.

        When ``stop`` is given the wait happens on it, and ``False`` is
        returned as soon as it is set instead of waiting out the window.
        """
        while True:
            if stop is not None and stop.is_set():
                return False
            with self._lock:
                now = self._time_fn()
                if self._window_start is None or now - self._window_start >= self.interval:
                    self._window_start = now
                    self._count = 0
                if self._count < self.cap:
                    self._count += 1
                    return True
                wait = max(self.interval - (now - self._window_start), 0.0)
            if stop is None:
                self._sleep_fn(wait)
            elif stop.wait(wait):
                return False
