"""
WordPress REST API client for the Tistory → WordPress migration.

This module implements every outbound call to the destination site: draft
post creation, media upload, compensating deletes and idempotent taxonomy
upserts.  All requests go through :func:`~blog_migrator.utils.retry.retry_with_backoff`
and authenticate with an application password (HTTP basic auth).

HTTP errors are converted to :class:`~blog_migrator.utils.errors.DestinationApiError`
*inside* the retried operation, so the retry layer re-raises that error
untouched and callers can look at ``status`` and the composed message.  No
status code is treated as non-retryable here; a 4xx is retried like a 5xx.

Usage example::

    from blog_migrator.config import load_settings
    from blog_migrator.migrators.wordpress_client import WordPressClient
    from blog_migrator.utils.retry import RetryPolicy

    settings = load_settings(config_file="config/migration_config.json")
    client = WordPressClient(settings.wordpress, RetryPolicy.from_settings(settings.migration))
    tech_id = client.ensure_category("Tech")
    media = client.upload_media("cover.jpg", "image/jpeg", data)
    post = client.create_draft_post(DraftPost(title="Hello", content="<p>hi</p>",
                                              date=now, category_ids=[tech_id],
                                              featured_media_id=media.id))
"""

from __future__ import annotations

import html
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from blog_migrator.config import WordPressSettings
from blog_migrator.migrators.term_cache import TermCache
from blog_migrator.models.wp_post import CreatedPost, DraftPost, UploadedMedia
from blog_migrator.utils.errors import DestinationApiError
from blog_migrator.utils.retry import RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)

TERMS_PER_PAGE = 100


def describe_http_error(response: requests.Response) -> DestinationApiError:
    """
    Build a :class:`DestinationApiError` from an error response.

    WordPress answers errors as ``{"code": ..., "message": ..., "data": {...}}``;
    the message keeps status, reason and that body message.
    """
    code: Optional[str] = None
    data: Dict[str, Any] = {}
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        body_message = body.get("message") or ""
        code = body.get("code")
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
    else:
        body_message = (response.text or "")[:200]
    message = f"HTTP {response.status_code} {response.reason or ''} {body_message}"
    return DestinationApiError(
        response.status_code,
        " ".join(message.split()),
        code=code,
        data=data,
    )


class WordPressClient:
    """
    Client for the ``/wp-json/wp/v2`` endpoints used by the migration.

    Category and tag ids are cached in :class:`TermCache` objects owned by
    the instance (or passed in), so one client per run avoids repeated
    lookups across every worker.
    """

    def __init__(
        self,
        settings: WordPressSettings,
        policy: RetryPolicy,
        *,
        session: Optional[requests.Session] = None,
        categories: Optional[TermCache] = None,
        tags: Optional[TermCache] = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_base = settings.api_base
        self.timeout = settings.timeout
        self.policy = policy
        self.categories = categories if categories is not None else TermCache()
        self.tags = tags if tags is not None else TermCache()
        self._sleep_fn = sleep_fn
        self.session = session or requests.Session()
        self.session.auth = (settings.app_user, settings.app_password)
        self.session.headers.update({"Accept": "application/json"})

    ###########################################################################
    # Request plumbing
    ###########################################################################

    def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> requests.Response:
        resp = self.session.request(method, f"{self.api_base}{path}", timeout=self.timeout, **kwargs)
        if resp.status_code >= 400:
            error = describe_http_error(resp)
            error.operation = operation
            raise error
        return resp

    def _with_retry(self, fn: Callable[[], Any], operation: str, url: str) -> Any:
        def on_retry(error: BaseException, attempt: int, delay: float) -> None:
            logger.warning(
                "Retrying WordPress request %s (%s) attempt %d in %.3fs: %s",
                operation,
                url,
                attempt,
                delay,
                error,
            )

        return retry_with_backoff(fn, self.policy, on_retry, sleep_fn=self._sleep_fn)

    ###########################################################################
    # Posts
    ###########################################################################

    def create_draft_post(self, draft: DraftPost) -> CreatedPost:
        """
        Create a post in ``draft`` status.

        :param draft: The validated payload.
        :return: Id, status and link of the created post.
        :raises DestinationApiError: when WordPress keeps rejecting the request.
        """
        payload = draft.to_wp_payload()

        def do_request() -> requests.Response:
            return self._request("POST", "/posts", "create_draft_post", json=payload)

        try:
            resp = self._with_retry(do_request, "create_draft_post", f"{self.api_base}/posts")
        except Exception as e:
            logger.error("Failed to create WordPress draft post %r: %s", draft.title, e)
            raise
        created = CreatedPost.model_validate(resp.json())
        logger.info("Created WordPress draft post %s (status=%s)", created.id, created.status)
        return created

    def delete_post(self, post_id: int) -> None:
        """Permanently delete a post.  A post that is already gone counts as deleted."""
        self._delete("posts", post_id)

    ###########################################################################
    # Media
    ###########################################################################

    def upload_media(
        self,
        file_name: str,
        mime_type: str,
        data: bytes,
        *,
        alt_text: Optional[str] = None,
        title: Optional[str] = None,
    ) -> UploadedMedia:
        """
        Upload a file to the media library.

        :return: Id, public URL, media type and MIME type of the attachment.
        """
        fields: Dict[str, str] = {}
        if alt_text:
            fields["alt_text"] = alt_text
        if title:
            fields["title"] = title

        def do_request() -> requests.Response:
            return self._request(
                "POST",
                "/media",
                "upload_media",
                files={"file": (file_name, data, mime_type)},
                data=fields,
            )

        try:
            resp = self._with_retry(do_request, "upload_media", f"{self.api_base}/media")
        except Exception as e:
            logger.error("Failed to upload WordPress media %s: %s", file_name, e)
            raise
        media = UploadedMedia.model_validate(resp.json())
        logger.info("Uploaded WordPress media %s (%s)", media.id, media.url)
        return media

    def delete_media(self, media_id: int) -> None:
        """Permanently delete an attachment.  Already absent media counts as deleted."""
        self._delete("media", media_id)

    def _delete(self, kind: str, object_id: int) -> None:
        operation = f"delete_{kind}"

        def do_request() -> bool:
            try:
                self._request("DELETE", f"/{kind}/{object_id}", operation, params={"force": "true"})
            except DestinationApiError as e:
                if e.is_not_found:
                    return False
                raise
            return True

        url = f"{self.api_base}/{kind}/{object_id}"
        try:
            deleted = self._with_retry(do_request, operation, url)
        except Exception as e:
            logger.error("Failed to delete WordPress %s %s: %s", kind, object_id, e)
            raise
        if deleted:
            logger.info("Deleted WordPress %s %s", kind, object_id)
        else:
            logger.warning("WordPress %s %s already absent; nothing to delete", kind, object_id)

    ###########################################################################
    # Taxonomy helpers
    ###########################################################################

    def ensure_category(self, name: str, parent_id: int = 0) -> int:
        """
        Return the id of the category called ``name``, creating it under
        ``parent_id`` when no exact match exists.
        """
        name = name.strip()
        return self.categories.get_or_create(
            name,
            lambda: self._find_term("categories", name) or self._create_term("categories", name, parent_id),
        )

    def ensure_tag(self, name: str) -> int:
        """Return the id of the tag called ``name``, creating it when missing."""
        name = name.strip()
        return self.tags.get_or_create(
            name,
            lambda: self._find_term("tags", name) or self._create_term("tags", name),
        )

    def _find_term(self, kind: str, name: str) -> Optional[int]:
        """
        Scan the search results page by page, following ``X-WP-TotalPages``.
        The first exact, case-sensitive name match wins.
        """
        page = 1
        while True:
            def do_request(page: int = page) -> requests.Response:
                return self._request(
                    "GET",
                    f"/{kind}",
                    f"search_{kind}",
                    params={"search": name, "per_page": TERMS_PER_PAGE, "page": page},
                )

            resp = self._with_retry(do_request, f"search_{kind}", f"{self.api_base}/{kind}")
            terms = resp.json() or []
            for term in terms:
                # WordPress returns names HTML-escaped ("Tips &amp; Tricks")
                if html.unescape(term.get("name") or "") == name:
                    logger.debug("Found existing %s %r with id %s", kind, name, term["id"])
                    return int(term["id"])

            try:
                total_pages = int(resp.headers.get("X-WP-TotalPages") or 1)
            except ValueError:
                total_pages = 1
            if not terms or page >= total_pages:
                return None
            page += 1

    def _create_term(self, kind: str, name: str, parent_id: int = 0) -> int:
        payload: Dict[str, Any] = {"name": name}
        if parent_id:
            payload["parent"] = parent_id

        def do_request() -> int:
            try:
                resp = self._request("POST", f"/{kind}", f"create_{kind}", json=payload)
            except DestinationApiError as e:
                # Someone created it between our search and this call
                if e.code == "term_exists" and e.data.get("term_id"):
                    return int(e.data["term_id"])
                raise
            return int(resp.json()["id"])

        term_id = self._with_retry(do_request, f"create_{kind}", f"{self.api_base}/{kind}")
        logger.info("Created WordPress %s %r with id %s", kind, name, term_id)
        return term_id
