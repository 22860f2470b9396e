"""
Generic retry wrapper with exponential, capped backoff.

Every network call of the migration (source page fetches, image downloads and
WordPress REST requests) goes through :func:`retry_with_backoff`.  The wrapper
keeps no state between calls, so several workers can use it concurrently.

The policy does not look at HTTP status codes: a 4xx answer is retried like
any other failure and finally re-raised untouched, so callers can inspect the
original exception type and message.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from blog_migrator.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnRetry = Callable[[BaseException, int, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits.  Delays are expressed in seconds."""

    max_attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, migration) -> "RetryPolicy":
        """Build a policy from :class:`~blog_migrator.config.MigrationSettings`."""
        return cls(
            max_attempts=migration.max_retry_attempts,
            initial_delay=migration.retry_initial_delay_ms / 1000.0,
            max_delay=migration.retry_max_delay_ms / 1000.0,
            backoff_multiplier=migration.retry_backoff_multiplier,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay slept after failed attempt number ``attempt`` (1-based)."""
        return min(self.initial_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)


def retry_with_backoff(
    fn: Callable[[], T],
    policy: RetryPolicy,
    on_retry: Optional[OnRetry] = None,
    *,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` until it succeeds or ``policy.max_attempts`` is reached.

    :param fn: A zero-argument callable performing the operation.
    :param policy: The retry limits.
    :param on_retry: Optional observer called as ``on_retry(error, attempt,
        delay)`` before sleeping after every failed attempt except the last.
    :param sleep_fn: Sleep function, injectable for tests.
    :return: The value returned by ``fn``.
    :raises ConfigurationError: if ``policy.max_attempts`` is not positive.
    :raises Exception: the last error raised by ``fn``, unmodified.
    """
    if policy.max_attempts <= 0:
        raise ConfigurationError("max_attempts must be greater than 0")

    attempt = 1
    while True:
        try:
            return fn()
        except Exception as e:
            if attempt >= policy.max_attempts:
                logger.warning(
                    "retry_with_backoff - max retry attempts (%d) exceeded: %s",
                    policy.max_attempts,
                    e,
                )
                raise
            delay = policy.delay_for(attempt)
            logger.debug(
                "retry_with_backoff - attempt %d/%d failed, retrying in %.3fs: %s",
                attempt,
                policy.max_attempts,
                delay,
                e,
            )
            if on_retry is not None:
                on_retry(e, attempt, delay)
            sleep_fn(delay)
            attempt += 1
