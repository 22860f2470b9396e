"""
Transfer of images referenced by a post into the WordPress media library.

Every asset gets a ledger row before anything is downloaded, and that row
ends up ``uploaded`` (with the WordPress id and URL) or ``failed`` (with the
error).  A failing asset re-raises: the saga then aborts and rolls back, so
no post is ever created with a mix of Tistory and WordPress image URLs.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import time
from typing import Callable, List, Optional, Set

import requests
from bs4 import BeautifulSoup

from blog_migrator.db.ledger import LedgerStore
from blog_migrator.migrators.wordpress_client import WordPressClient
from blog_migrator.models.ledger import ImageAssetStatus
from blog_migrator.models.post import Image
from blog_migrator.utils.errors import MediaDownloadError
from blog_migrator.utils.retry import RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)

FALLBACK_EXTENSION = ".jpg"
FALLBACK_MIME_TYPE = "application/octet-stream"

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/svg+xml": ".svg",
    "image/avif": ".avif",
    "image/heic": ".heic",
}


def slugify_title(title: str, limit: int = 20) -> str:
    """Lowercase, hyphenate spaces, keep ``a-z0-9-`` and cut to ``limit`` characters."""
    slug = re.sub(r"\s+", "-", (title or "").strip().lower())
    slug = re.sub(r"[^a-z0-9\-]", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    slug = slug[:limit].strip("-")
    return slug or "post"


def extension_for(content_type: Optional[str]) -> str:
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime in _EXTENSIONS:
        return _EXTENSIONS[mime]
    guessed = mimetypes.guess_extension(mime) if mime else None
    return guessed or FALLBACK_EXTENSION


class MediaPipeline:
    def __init__(
        self,
        client: WordPressClient,
        ledger: LedgerStore,
        policy: RetryPolicy,
        *,
        embed_card_selector: str = "div.bookmark-card",
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.ledger = ledger
        self.policy = policy
        self.embed_card_selector = embed_card_selector
        self.session = session or requests.Session()
        self.timeout = timeout
        self._sleep_fn = sleep_fn

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------
    def download(self, url: str) -> tuple[bytes, str]:
        """Fetch ``url`` with retries.  Returns the body and its MIME type."""

        def do_request() -> requests.Response:
            resp = self.session.get(url, timeout=self.timeout)
            if resp.status_code >= 400:
                raise MediaDownloadError(f"HTTP {resp.status_code} downloading {url}")
            return resp

        def on_retry(error: BaseException, attempt: int, delay: float) -> None:
            logger.warning("Retrying image download %s attempt %d in %.3fs: %s", url, attempt, delay, error)

        resp = retry_with_backoff(do_request, self.policy, on_retry, sleep_fn=self._sleep_fn)
        mime_type = (resp.headers.get("Content-Type") or FALLBACK_MIME_TYPE).split(";")[0].strip()
        return resp.content, mime_type

    # ------------------------------------------------------------------
    # Single asset lifecycle
    # ------------------------------------------------------------------
    def transfer(
        self,
        job_item_id: int,
        image: Image,
        file_stem: str,
        on_uploaded: Optional[Callable[[Image], None]] = None,
    ) -> Image:
        """
        Download ``image`` and upload it to WordPress, tracking the attempt in
        the ledger.  Fills ``media_id``/``media_url`` on success.

        ``on_uploaded`` is called with the image as soon as WordPress holds
        it, before the ledger is updated, so a caller can delete the upload
        even when the ledger write fails.
        """
        asset = self.ledger.create_image_asset(job_item_id, image.url)
        try:
            data, mime_type = self.download(image.url)
            file_name = f"{file_stem}{extension_for(mime_type)}"
            uploaded = self.client.upload_media(
                file_name,
                mime_type,
                data,
                alt_text=image.alt_text or None,
            )
        except Exception as e:
            self._mark_failed(asset.id, image.url, e)
            raise

        image.media_id = uploaded.id
        image.media_url = uploaded.url
        if on_uploaded is not None:
            on_uploaded(image)

        self.ledger.update_image_asset(
            asset.id,
            status=ImageAssetStatus.UPLOADED,
            destination_media_id=uploaded.id,
            destination_media_url=uploaded.url,
            error_message=None,
        )
        return image

    def _mark_failed(self, asset_id: int, url: str, error: BaseException) -> None:
        logger.error("Image transfer failed for %s: %s", url, error)
        try:
            self.ledger.update_image_asset(
                asset_id,
                status=ImageAssetStatus.FAILED,
                error_message=str(error),
            )
        except Exception as e:
            logger.error("Could not mark image asset %s as failed: %s", asset_id, e)

    # ------------------------------------------------------------------
    # Post level
    # ------------------------------------------------------------------
    def process_featured_image(
        self,
        job_item_id: int,
        title: str,
        url: str,
        on_uploaded: Optional[Callable[[Image], None]] = None,
    ) -> Image:
        image = Image(url=url, alt_text=title)
        return self.transfer(job_item_id, image, f"{slugify_title(title)}-featured", on_uploaded)

    def process_images(
        self,
        job_item_id: int,
        title: str,
        html: str,
        uploaded: List[Image],
    ) -> str:
        """
        Upload every ``<img>`` of ``html`` and point it at the WordPress copy.

        Each image is appended to ``uploaded`` as soon as WordPress holds it,
        so the caller can delete what was already uploaded when a later image
        or ledger write fails.

        :return: The rewritten HTML.
        """
        soup = BeautifulSoup(html or "", "html.parser")
        in_cards: Set[int] = set()
        for card in soup.select(self.embed_card_selector):
            in_cards.update(id(img) for img in card.find_all("img"))

        stem = slugify_title(title)
        index = 0
        for img in soup.find_all("img"):
            if id(img) in in_cards:
                continue
            src = (img.get("src") or "").strip()
            if not src or src.startswith("data:"):
                continue
            index += 1
            image = Image(url=src, alt_text=img.get("alt") or None)
            self.transfer(job_item_id, image, f"{stem}-image-{index}", uploaded.append)
            img["src"] = image.media_url
            for attr in ("srcset", "data-src", "data-origin-src", "data-url"):
                if img.has_attr(attr):
                    del img[attr]

        if index == 0:
            return html
        return str(soup)
