"""
Source side of the migration: discover and read Tistory posts.

:class:`TistoryCrawler` walks the paginated post list of the blog
(``https://blog`` then ``https://blog?page=2``, ...) collecting post links,
downloads single post pages and extracts the metadata the migration needs.
Selectors come from :class:`~blog_migrator.config.SelectorSettings`.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from blog_migrator.config import CategoryHierarchyOrder, SelectorSettings
from blog_migrator.models.post import PostMetadata
from blog_migrator.utils.categories import build_category_hierarchy
from blog_migrator.utils.retry import RetryPolicy, retry_with_backoff
from blog_migrator.utils.tags import normalize_label, parse_tag_labels

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], str]


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as published in the post meta tags."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Unparseable post date %r", value)
        return None


def _element_value(element) -> str:
    """``content`` of a meta tag, otherwise the element text."""
    if element is None:
        return ""
    if element.name == "meta":
        return (element.get("content") or "").strip()
    return element.get_text(" ", strip=True)


class TistoryCrawler:
    def __init__(
        self,
        blog_url: str,
        selectors: SelectorSettings,
        policy: RetryPolicy,
        *,
        hierarchy_order: CategoryHierarchyOrder = CategoryHierarchyOrder.FIRST_IS_PARENT,
        session: Optional[requests.Session] = None,
        fetch_fn: Optional[FetchFn] = None,
        timeout: float = 30.0,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.blog_url = blog_url.rstrip("/")
        self.selectors = selectors
        self.policy = policy
        self.hierarchy_order = hierarchy_order
        self.session = session or requests.Session()
        self.timeout = timeout
        self._fetch_fn = fetch_fn or self._http_get
        self._sleep_fn = sleep_fn

    def _http_get(self, url: str) -> str:
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.text

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def page_url(self, page: int) -> str:
        return self.blog_url if page == 1 else f"{self.blog_url}?page={page}"

    def discover_post_urls(self) -> List[str]:
        """
        Collect post URLs from the list pages.

        Stops at the first page that cannot be fetched or that yields no link
        not already seen.  URLs keep first-seen order and are unique.
        """
        urls: List[str] = []
        seen = set()
        page = 1
        while True:
            url = self.page_url(page)
            try:
                html = self._fetch_fn(url)
            except Exception as e:
                logger.info("Stopping discovery at page %d: %s", page, e)
                break

            new_urls = [u for u in self._extract_post_links(html) if u not in seen]
            if not new_urls:
                logger.info("Stopping discovery at page %d: no new post links", page)
                break
            for u in new_urls:
                seen.add(u)
                urls.append(u)
            logger.debug("Discovered %d post URLs on page %d", len(new_urls), page)
            page += 1

        logger.info("Discovered %d post URLs", len(urls))
        return urls

    def _extract_post_links(self, html: str) -> List[str]:
        soup = BeautifulSoup(html or "", "html.parser")
        blog_host = urlparse(self.blog_url).hostname
        links: List[str] = []
        for a in soup.select(self.selectors.post_link):
            href = (a.get("href") or "").strip()
            if not href:
                continue
            absolute = urljoin(self.blog_url + "/", href)
            parsed = urlparse(absolute)
            if parsed.hostname != blog_host:
                continue
            absolute = parsed._replace(fragment="").geturl()
            if absolute not in links:
                links.append(absolute)
        return links

    # ------------------------------------------------------------------
    # Single post
    # ------------------------------------------------------------------
    def fetch_post_html(self, url: str) -> str:
        def on_retry(error: BaseException, attempt: int, delay: float) -> None:
            logger.warning("Retrying post fetch %s attempt %d in %.3fs: %s", url, attempt, delay, error)

        return retry_with_backoff(
            lambda: self._fetch_fn(url), self.policy, on_retry, sleep_fn=self._sleep_fn
        )

    def parse_post_metadata(self, html: str, url: str) -> PostMetadata:
        soup = BeautifulSoup(html or "", "html.parser")
        s = self.selectors

        title = normalize_label(_element_value(soup.select_one(s.title)))
        if not title:
            logger.warning("Post %s has no title; using 'Untitled'", url)
            title = "Untitled"

        publish_date = _parse_date(_element_value(soup.select_one(s.publish_date)))
        if publish_date is None:
            logger.warning("Post %s has no publish date; using the current time", url)
            publish_date = datetime.now(timezone.utc)
        modified_date = _parse_date(_element_value(soup.select_one(s.modified_date)))

        categories = build_category_hierarchy(
            [el.get_text(" ", strip=True) for el in soup.select(s.category)],
            self.hierarchy_order,
        )
        tags = parse_tag_labels(el.get_text(" ", strip=True) for el in soup.select(s.tag))

        return PostMetadata(
            title=title,
            publish_date=publish_date,
            modified_date=modified_date,
            categories=categories,
            tags=tags,
        )

    def extract_featured_image_url(self, html: str) -> Optional[str]:
        soup = BeautifulSoup(html or "", "html.parser")
        element = soup.select_one(self.selectors.featured_image)
        if element is None:
            return None
        value = element.get("content") if element.name == "meta" else element.get("src")
        value = (value or "").strip()
        if not value:
            return None
        return urljoin(self.blog_url + "/", value)
