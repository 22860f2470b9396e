"""
Bounded, rate limited pool driving the migration saga over many URLs.

Two independent limits apply: at most ``concurrency`` sagas run at the same
time, and the :class:`~blog_migrator.utils.rate_limiter.IntervalRateLimiter`
admits at most ``cap`` new sagas per interval.  A failing saga is logged and
counted; it never stops its siblings.  Failure details live in the ledger.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List

from blog_migrator.services.migrator import Migrator
from blog_migrator.utils.rate_limiter import IntervalRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class ProcessSummary:
    admitted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    interrupted: bool = False


class PostProcessor:
    def __init__(self, migrator: Migrator, concurrency: int, rate_limiter: IntervalRateLimiter) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be greater than 0")
        self.migrator = migrator
        self.concurrency = concurrency
        self.rate_limiter = rate_limiter
        self._slots = threading.BoundedSemaphore(concurrency)
        self._stop = threading.Event()

    def request_stop(self) -> None:
        """Stop admitting new URLs.  Sagas already running finish normally."""
        if not self._stop.is_set():
            logger.warning("Stop requested; no new posts will be started")
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def _run(self, url: str, job_id: int) -> bool:
        try:
            self.migrator.migrate_post_by_url(url, job_id)
            return True
        except Exception as e:
            logger.error("Post %s failed: %s", url, e)
            return False
        finally:
            self._slots.release()

    def process(self, urls: Iterable[str], job_id: int) -> ProcessSummary:
        """
        Migrate every URL of ``urls`` within ``job_id``.

        Returns once every admitted saga has finished, successfully or not,
        so the ledger is settled when the caller summarizes the job.
        """
        summary = ProcessSummary()
        futures: List[Future] = []

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="migrate") as pool:
            for url in urls:
                if self._stop.is_set():
                    summary.skipped += 1
                    continue
                # Wait for a free worker before taking an admission slot
                self._slots.acquire()
                if not self.rate_limiter.acquire(self._stop) or self._stop.is_set():
                    self._slots.release()
                    summary.skipped += 1
                    continue
                summary.admitted += 1
                logger.debug("Admitted %s", url)
                futures.append(pool.submit(self._run, url, job_id))

            for future in futures:
                if future.result():
                    summary.succeeded += 1
                else:
                    summary.failed += 1

        summary.interrupted = self._stop.is_set()
        logger.info(
            "Processed %d posts: %d succeeded, %d failed, %d not started",
            summary.admitted,
            summary.succeeded,
            summary.failed,
            summary.skipped,
        )
        return summary
