import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import threading
import time

import pytest

from blog_migrator.utils.rate_limiter import IntervalRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_cap_admissions_per_window_then_waits_for_next_window():
    clock = FakeClock()
    limiter = IntervalRateLimiter(2, 10, time_fn=clock.time, sleep_fn=clock.sleep)

    limiter.acquire()
    limiter.acquire()
    assert clock.sleeps == []

    limiter.acquire()
    assert clock.sleeps == [10]
    assert clock.now == 110.0


def test_partial_window_waits_only_for_the_remainder():
    clock = FakeClock()
    limiter = IntervalRateLimiter(1, 10, time_fn=clock.time, sleep_fn=clock.sleep)

    limiter.acquire()
    clock.now += 4
    limiter.acquire()
    assert clock.sleeps == [6]


@pytest.mark.parametrize("cap,interval", [(0, 1), (1, 0), (-1, 5)])
def test_invalid_limits_are_rejected(cap, interval):
    with pytest.raises(ValueError):
        IntervalRateLimiter(cap, interval)


def test_stop_event_interrupts_a_long_wait():
    limiter = IntervalRateLimiter(1, 60)
    stop = threading.Event()
    assert limiter.acquire(stop) is True

    threading.Timer(0.05, stop.set).start()
    started = time.monotonic()

    assert limiter.acquire(stop) is False
    assert time.monotonic() - started < 5


def test_stop_already_set_refuses_admission():
    clock = FakeClock()
    limiter = IntervalRateLimiter(5, 10, time_fn=clock.time, sleep_fn=clock.sleep)
    stop = threading.Event()
    stop.set()

    assert limiter.acquire(stop) is False
    assert limiter.acquire() is True
