from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from blog_migrator.db.ledger import LedgerStore
from blog_migrator.utils.errors import PersistenceError

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 50


@dataclass
class InternalLink:
    source_url: str
    target_url: str
    link_text: Optional[str] = None
    context: Optional[str] = None


class LinkTracker:
    """Records links between posts of the same blog so they can be rewritten later."""

    def __init__(self, ledger: LedgerStore, blog_url: str) -> None:
        self.ledger = ledger
        self.blog_url = blog_url.rstrip("/")
        self.blog_host = urlparse(self.blog_url).hostname

    def extract_internal_links(self, source_url: str, html: str) -> List[InternalLink]:
        soup = BeautifulSoup(html or "", "html.parser")
        links: List[InternalLink] = []
        for a in soup.select("a[href]"):
            href = (a.get("href") or "").strip()
            if not href or href.startswith(("mailto:", "javascript:", "#")):
                continue
            target = urljoin(self.blog_url + "/", href)
            if urlparse(target).hostname != self.blog_host:
                continue

            link_text = a.get_text(" ", strip=True)
            context = None
            if a.parent is not None:
                parent_text = a.parent.get_text(" ", strip=True)
                index = parent_text.find(link_text)
                if index >= 0:
                    start = max(0, index - CONTEXT_CHARS)
                    end = min(len(parent_text), index + len(link_text) + CONTEXT_CHARS)
                    context = parent_text[start:end].strip()

            links.append(
                InternalLink(
                    source_url=source_url,
                    target_url=target,
                    link_text=link_text or None,
                    context=context or None,
                )
            )
        return links

    def track_internal_links(self, source_url: str, html: str, job_item_id: int) -> int:
        """
        Persist every internal link of ``html``.  A failed insert is logged
        and skipped; the remaining links are still recorded.

        :return: Number of links stored.
        """
        links = self.extract_internal_links(source_url, html)
        if not links:
            logger.debug("No internal links found in %s", source_url)
            return 0

        logger.info("Tracking %d internal links of %s", len(links), source_url)
        stored = 0
        for link in links:
            try:
                self.ledger.insert_internal_link(
                    job_item_id,
                    link.source_url,
                    link.target_url,
                    link_text=link.link_text,
                    context=link.context,
                )
                stored += 1
            except PersistenceError as e:
                logger.error("Failed to record internal link %s -> %s: %s", source_url, link.target_url, e)
        return stored
