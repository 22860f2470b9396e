from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Set

from blog_migrator.db.ledger import LedgerStore
from blog_migrator.models.ledger import MigrationJobItemStatus

logger = logging.getLogger(__name__)


@dataclass
class ResumePlan:
    pending: List[str] = field(default_factory=list)
    skipped: int = 0
    success_urls: Set[str] = field(default_factory=set)
    failed_urls: Set[str] = field(default_factory=set)


def plan_pending_urls(
    ledger: LedgerStore,
    job_id: int,
    discovered: Iterable[str],
    retry_failed: bool = False,
) -> ResumePlan:
    """
    Work out which discovered URLs still need a saga in ``job_id``.

    URLs that already succeeded in the job are always skipped.  Failed ones
    are skipped too unless ``retry_failed`` is set.  The ledger is read on
    every call, so a restarted process resumes where the previous one
    stopped.  Duplicate URLs are dropped, keeping the first occurrence.
    """
    success_urls = {
        item.source_url for item in ledger.get_items_by_job_and_status(job_id, MigrationJobItemStatus.SUCCESS)
    }
    failed_urls = {
        item.source_url for item in ledger.get_items_by_job_and_status(job_id, MigrationJobItemStatus.FAILED)
    }
    done = success_urls if retry_failed else success_urls | failed_urls

    plan = ResumePlan(success_urls=success_urls, failed_urls=failed_urls)
    seen: Set[str] = set()
    for url in discovered:
        if url in seen:
            continue
        seen.add(url)
        if url in done:
            plan.skipped += 1
        else:
            plan.pending.append(url)

    if plan.skipped:
        logger.info(
            "Resuming job %s: skipping %d posts (%d succeeded, %d failed), %d pending",
            job_id,
            plan.skipped,
            len(success_urls),
            len(failed_urls),
            len(plan.pending),
        )
    return plan
