"""
High-level orchestration of the Tistory → WordPress migration.

This module defines a :class:`MigrationTool` class that ties together the
crawler, transforms, WordPress client, media pipeline, saga, worker pool and
ledger into a complete pipeline.  It supports migrating a single post or the
whole blog (resuming an interrupted run, optionally retrying failures),
finalizing jobs with a printed summary and exporting ledger reports.

Settings are loaded by the caller (see :func:`blog_migrator.config.load_settings`)
and the ledger is owned by the caller as well, so it is closed on every exit
path::

    with LedgerStore(settings.migration.db_path) as ledger:
        tool = MigrationTool(settings, ledger)
        exit_code = tool.migrate_all()
"""

from __future__ import annotations

import functools
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

from blog_migrator.config import Settings
from blog_migrator.db.ledger import LedgerStore
from blog_migrator.extractors.tistory_extractor import TistoryCrawler
from blog_migrator.migrators.wordpress_client import WordPressClient
from blog_migrator.models.ledger import JobSummary, MigrationJob, MigrationJobStatus, MigrationJobType
from blog_migrator.parsers.embeds import replace_embeds
from blog_migrator.parsers.html_cleaner import clean_html
from blog_migrator.services.exporters import export_failed_posts, export_link_mapping, generate_post_map_csv
from blog_migrator.services.link_tracker import LinkTracker
from blog_migrator.services.media_pipeline import MediaPipeline
from blog_migrator.services.migrator import Migrator
from blog_migrator.services.resume_planner import plan_pending_urls
from blog_migrator.utils.errors import report_ok
from blog_migrator.utils.rate_limiter import IntervalRateLimiter
from blog_migrator.utils.retry import RetryPolicy
from blog_migrator.workers.post_processor import PostProcessor

logger = logging.getLogger(__name__)


class MigrationTool:
    """
    Encapsulates the collaborators of one migration run.  Every collaborator
    can be injected; the defaults are built from ``settings``.
    """

    def __init__(
        self,
        settings: Settings,
        ledger: LedgerStore,
        *,
        crawler: Optional[TistoryCrawler] = None,
        client: Optional[WordPressClient] = None,
        media: Optional[MediaPipeline] = None,
        link_tracker: Optional[LinkTracker] = None,
        migrator: Optional[Migrator] = None,
        rate_limiter: Optional[IntervalRateLimiter] = None,
        session: Optional[requests.Session] = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.ledger = ledger
        policy = RetryPolicy.from_settings(settings.migration)
        selectors = settings.source.selectors

        self.crawler = crawler or TistoryCrawler(
            settings.blog_url,
            selectors,
            policy,
            hierarchy_order=settings.migration.category_hierarchy_order,
            session=session,
            timeout=settings.wordpress.timeout,
            sleep_fn=sleep_fn,
        )
        self.client = client or WordPressClient(settings.wordpress, policy, sleep_fn=sleep_fn)
        self.media = media or MediaPipeline(
            self.client,
            ledger,
            policy,
            embed_card_selector=selectors.embed_card,
            session=session,
            timeout=settings.wordpress.timeout,
            sleep_fn=sleep_fn,
        )
        self.link_tracker = link_tracker or LinkTracker(ledger, settings.blog_url)
        self.migrator = migrator or Migrator(
            ledger,
            self.crawler,
            self.client,
            self.media,
            self.link_tracker,
            settings,
            clean_fn=functools.partial(clean_html, content_selector=selectors.content),
            embed_fn=functools.partial(replace_embeds, bookmark_selector=selectors.bookmark),
        )
        self.rate_limiter = rate_limiter or IntervalRateLimiter(
            settings.migration.rate_limit_cap,
            settings.migration.rate_limit_interval_ms / 1000.0,
            sleep_fn=sleep_fn,
        )
        self.processor = PostProcessor(self.migrator, settings.migration.worker_count, self.rate_limiter)

    def request_stop(self) -> None:
        self.processor.request_stop()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------
    def migrate_single(self, url: str) -> int:
        """Migrate one post in a new ``single`` job.  Returns the process exit code."""
        job = self.ledger.create_job(MigrationJobType.SINGLE, self.settings.blog_url)
        try:
            self.migrator.migrate_post_by_url(url, job.id)
        except Exception as e:
            logger.error("Migration of %s failed: %s", url, e)
        return self.finalize_job(job.id)

    def _full_job(self, retry_failed: bool) -> MigrationJob:
        blog_url = self.settings.blog_url
        if retry_failed:
            job = self.ledger.get_latest_job(MigrationJobType.FULL, blog_url)
            if job is not None:
                if job.status != MigrationJobStatus.RUNNING.value:
                    self.ledger.update_job(
                        job.id,
                        status=MigrationJobStatus.RUNNING,
                        completed_at=None,
                        error_message=None,
                    )
                logger.info("Retrying failed posts of job %s", job.id)
                return job
        else:
            job = self.ledger.get_latest_job(MigrationJobType.FULL, blog_url, MigrationJobStatus.RUNNING)
            if job is not None:
                logger.info("Resuming running job %s", job.id)
                return job
        return self.ledger.create_job(MigrationJobType.FULL, blog_url)

    def migrate_all(self, retry_failed: bool = False) -> int:
        """
        Discover every post of the blog and migrate those the job has not
        handled yet.  An interrupted run leaves the job ``running`` so the
        next call resumes it.

        :param retry_failed: Also retry posts that failed in the job.
        :return: The process exit code.
        """
        job = self._full_job(retry_failed)

        urls = self.crawler.discover_post_urls()
        logger.info("Discovered %d posts for job %s", len(urls), job.id)

        plan = plan_pending_urls(self.ledger, job.id, urls, retry_failed=retry_failed)
        if not plan.pending:
            logger.info("Nothing left to migrate for job %s", job.id)

        summary = self.processor.process(plan.pending, job.id)
        if summary.interrupted:
            logger.warning(
                "Job %s interrupted with %d posts not started; run again to resume",
                job.id,
                summary.skipped,
            )
            self.print_summary(self.ledger.summarize_job(job.id))
            return 1
        return self.finalize_job(job.id)

    def finalize_job(self, job_id: int) -> int:
        """Settle the job status from its items and print the summary.  Returns the exit code."""
        summary = self.ledger.summarize_job(job_id)
        failed = summary.failed > 0
        self.ledger.update_job(
            job_id,
            status=MigrationJobStatus.FAILED if failed else MigrationJobStatus.COMPLETED,
            completed_at=datetime.now(timezone.utc).isoformat(),
            error_message=f"{summary.failed} posts failed to migrate" if failed else None,
        )
        report_ok(
            "JOB_FINALIZED",
            {"url": self.settings.blog_url},
            extra={"job_id": job_id, "completed": summary.completed, "failed": summary.failed},
        )
        self.print_summary(summary)
        return 1 if failed else 0

    @staticmethod
    def print_summary(summary: JobSummary) -> None:
        print("")
        print("----------------------------------------")
        print(f"- Migration Job Summary (jobId={summary.job_id})")
        print("----------------------------------------")
        print(f"- Completed: {summary.completed}")
        print(f"- Failed: {summary.failed}")
        if summary.running:
            print(f"- Unfinished: {summary.running}")
        print("----------------------------------------")

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------
    def export_links(self, path: str, job_id: Optional[int] = None) -> dict:
        return export_link_mapping(self.ledger, path, job_id)

    def export_failed(self, path: str) -> dict:
        return export_failed_posts(self.ledger, path, self.settings.blog_url)

    def export_post_map(self, path: str) -> str:
        return generate_post_map_csv(self.ledger, path)
