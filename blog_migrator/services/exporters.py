"""
Read-only reports built from the migration ledger.

* :func:`export_link_mapping` dumps the internal links found in migrated
  posts, each one annotated with the WordPress id of its target when that
  post has already been migrated, so links can be rewritten afterwards.
* :func:`export_failed_posts` lists posts of a blog that failed and never
  succeeded in a later job, with every distinct error message seen.
* :func:`generate_post_map_csv` writes the ``source_url`` → WordPress id
  mapping, usable to configure redirects.
"""

from __future__ import annotations

import csv
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from blog_migrator.db.ledger import LedgerStore

logger = logging.getLogger(__name__)


def _ensure_parent(path: str) -> None:
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)
        logger.info("Created output directory: %s", directory)


def _write_json(path: str, data: Dict[str, Any]) -> None:
    _ensure_parent(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def export_link_mapping(ledger: LedgerStore, path: str, job_id: Optional[int] = None) -> Dict[str, Any]:
    """Write the internal links of ``job_id`` (or of every job) to ``path`` as JSON."""
    records = ledger.get_internal_links_by_job(job_id) if job_id is not None else ledger.get_all_internal_links()
    mapped = {m.source_url: m.destination_content_id for m in ledger.get_all_post_maps()}

    links: List[Dict[str, Any]] = []
    for record in records:
        links.append(
            {
                "job_item_id": record.job_item_id,
                "source_url": record.source_url,
                "target_url": record.target_url,
                "link_text": record.link_text,
                "context": record.context,
                "source_destination_id": mapped.get(record.source_url),
                "target_destination_id": mapped.get(record.target_url),
            }
        )

    data = {
        "job_id": job_id,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "count": len(links),
        "links": links,
    }
    _write_json(path, data)
    logger.info("Exported %d internal links to %s", len(links), path)
    return data


def export_failed_posts(ledger: LedgerStore, path: str, blog_url: str) -> Dict[str, Any]:
    """
    Write the unresolved failures of ``blog_url`` to ``path``.

    Items are grouped by source URL; ``error_messages`` keeps each distinct
    message once, in the order it was first recorded.
    """
    messages_by_url: Dict[str, List[str]] = {}
    for item in ledger.get_unresolved_failed_items_by_blog(blog_url):
        messages = messages_by_url.setdefault(item.source_url, [])
        if item.error_message and item.error_message not in messages:
            messages.append(item.error_message)

    items = [{"source_url": url, "error_messages": messages} for url, messages in messages_by_url.items()]
    data = {
        "blog_url": blog_url,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "count": len(items),
        "items": items,
    }
    _write_json(path, data)
    logger.info("Exported %d failed posts of %s to %s", len(items), blog_url, path)
    return data


def generate_post_map_csv(ledger: LedgerStore, path: str) -> str:
    """Write every post mapping as ``source_url,destination_content_id`` rows.

    Returns
    -------
    str
        The path of the generated CSV file.
    """
    _ensure_parent(path)
    post_maps = ledger.get_all_post_maps()
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["source_url", "destination_content_id"])
        for post_map in post_maps:
            writer.writerow([post_map.source_url, post_map.destination_content_id])
    logger.info("Exported %d post mappings to %s", len(post_maps), path)
    return path
