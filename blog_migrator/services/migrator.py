"""
Per-post migration saga.

:meth:`Migrator.migrate_post_by_url` moves one Tistory post into a WordPress
draft in strictly sequential steps:

1. create the ledger item,
2. fetch the page and extract metadata and the featured image URL,
3. replace bookmark figures and clean the content,
4. record internal links,
5. upload the featured image and every body image,
6. resolve categories (parents first) and tags,
7. create the draft post,
8. store the post map and mark the item ``success``.

Every step after the first runs through :func:`run_step`, which turns its
outcome into a :class:`StepResult`.  The first failed step stops the saga;
the compensations recorded so far are run in order (featured media, body
media, then the post), each one on its own so that a failing delete neither
stops the others nor hides the original error.  The item is then marked
``failed`` with the original message and that same exception is raised to
the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from blog_migrator.config import Settings
from blog_migrator.db.ledger import LedgerStore
from blog_migrator.extractors.tistory_extractor import TistoryCrawler
from blog_migrator.migrators.wordpress_client import WordPressClient
from blog_migrator.models.ledger import MigrationJobItemStatus
from blog_migrator.models.post import Category, Image, Post
from blog_migrator.models.wp_post import DraftPost
from blog_migrator.services.link_tracker import LinkTracker
from blog_migrator.services.media_pipeline import MediaPipeline
from blog_migrator.utils.errors import report_error, report_ok

logger = logging.getLogger(__name__)

HtmlTransform = Callable[[str], str]


@dataclass
class StepResult:
    """Outcome of one saga step: a value, or the error that stopped it."""

    step: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, step: str, value: Any = None) -> "StepResult":
        return cls(step=step, value=value)

    @classmethod
    def failure(cls, step: str, error: BaseException) -> "StepResult":
        return cls(step=step, error=error)


def run_step(step: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> StepResult:
    try:
        return StepResult.success(step, fn(*args, **kwargs))
    except Exception as e:
        logger.error("Migration step %s failed: %s", step, e)
        return StepResult.failure(step, e)


@dataclass
class SagaState:
    """Side effects applied so far for one post; the source of its compensations."""

    url: str
    item_id: int
    title: Optional[str] = None
    featured_image: Optional[Image] = None
    body_images: List[Image] = field(default_factory=list)
    content_id: Optional[int] = None

    def record_featured_image(self, image: Image) -> None:
        self.featured_image = image

    def compensations(self, client: WordPressClient) -> List[Tuple[str, Callable[[], None]]]:
        actions: List[Tuple[str, Callable[[], None]]] = []
        if self.featured_image is not None and self.featured_image.media_id:
            media_id = self.featured_image.media_id
            actions.append((f"delete featured media {media_id}", lambda: client.delete_media(media_id)))
        for image in self.body_images:
            if image.media_id:
                actions.append(
                    (f"delete media {image.media_id}", lambda media_id=image.media_id: client.delete_media(media_id))
                )
        if self.content_id is not None:
            content_id = self.content_id
            actions.append((f"delete post {content_id}", lambda: client.delete_post(content_id)))
        return actions


@dataclass
class MigrationOutcome:
    item_id: int
    source_url: str
    title: str
    destination_content_id: int


class Migrator:
    def __init__(
        self,
        ledger: LedgerStore,
        crawler: TistoryCrawler,
        client: WordPressClient,
        media: MediaPipeline,
        link_tracker: LinkTracker,
        settings: Settings,
        *,
        clean_fn: HtmlTransform,
        embed_fn: HtmlTransform,
    ) -> None:
        self.ledger = ledger
        self.crawler = crawler
        self.client = client
        self.media = media
        self.link_tracker = link_tracker
        self.settings = settings
        self.clean_fn = clean_fn
        self.embed_fn = embed_fn

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _fetch(self, url: str) -> Tuple[Post, Optional[str], str]:
        html = self.crawler.fetch_post_html(url)
        metadata = self.crawler.parse_post_metadata(html, url)
        featured_url = self.crawler.extract_featured_image_url(html)
        return Post.from_metadata(url, metadata, ""), featured_url, html

    def _transform(self, html: str) -> str:
        return self.clean_fn(self.embed_fn(html))

    def _upload_images(self, state: SagaState, post: Post, featured_url: Optional[str]) -> None:
        if featured_url:
            post.featured_image = self.media.process_featured_image(
                state.item_id,
                post.title,
                featured_url,
                on_uploaded=state.record_featured_image,
            )
        post.content = self.media.process_images(state.item_id, post.title, post.content, state.body_images)
        post.images = list(state.body_images)

    def _resolve_category(self, category: Category, resolved: Dict[Tuple[str, ...], int]) -> int:
        key = tuple(category.lineage())
        if key in resolved:
            return resolved[key]
        parent_id = self._resolve_category(category.parent, resolved) if category.parent else 0
        resolved[key] = self.client.ensure_category(category.name, parent_id)
        return resolved[key]

    def _resolve_terms(self, post: Post) -> Tuple[List[int], List[int]]:
        resolved: Dict[Tuple[str, ...], int] = {}
        category_ids = [self._resolve_category(c, resolved) for c in post.categories]
        tag_ids = [self.client.ensure_tag(t.name) for t in post.tags]
        return category_ids, tag_ids

    def _create_draft(self, post: Post, category_ids: List[int], tag_ids: List[int]) -> int:
        draft = DraftPost(
            title=post.title,
            content=post.content,
            date=post.publish_date,
            category_ids=category_ids,
            tag_ids=tag_ids,
            featured_media_id=post.featured_image.media_id if post.featured_image else None,
        )
        return self.client.create_draft_post(draft).id

    def _complete(self, state: SagaState) -> None:
        self.ledger.create_post_map(state.url, state.content_id)
        self.ledger.update_item(
            state.item_id,
            status=MigrationJobItemStatus.SUCCESS,
            destination_content_id=state.content_id,
            error_message=None,
        )

    # ------------------------------------------------------------------
    # Saga
    # ------------------------------------------------------------------
    def migrate_post_by_url(self, url: str, job_id: int) -> MigrationOutcome:
        """
        Migrate ``url`` as part of ``job_id``.

        :return: The ledger item id and the id of the created WordPress draft.
        :raises Exception: the error of the failed step, after rollback.
        """
        item = self.ledger.create_item(job_id, url)
        state = SagaState(url=url, item_id=item.id)
        logger.info("Migrating %s (item %s)", url, item.id)

        result = run_step("fetch", self._fetch, url)
        if not result.ok:
            raise self._fail(state, result)
        post, featured_url, html = result.value
        state.title = post.title

        result = run_step("transform", self._transform, html)
        if not result.ok:
            raise self._fail(state, result)
        post.content = result.value

        # Individual insert failures are logged inside the tracker
        result = run_step("track_links", self.link_tracker.track_internal_links, url, post.content, item.id)
        if not result.ok:
            raise self._fail(state, result)

        result = run_step("upload_images", self._upload_images, state, post, featured_url)
        if not result.ok:
            raise self._fail(state, result)

        result = run_step("resolve_terms", self._resolve_terms, post)
        if not result.ok:
            raise self._fail(state, result)
        category_ids, tag_ids = result.value

        result = run_step("create_post", self._create_draft, post, category_ids, tag_ids)
        if not result.ok:
            raise self._fail(state, result)
        state.content_id = result.value

        result = run_step("complete", self._complete, state)
        if not result.ok:
            raise self._fail(state, result)

        logger.info("Migrated %s to WordPress draft %s", url, state.content_id)
        report_ok(
            "POST_MIGRATED",
            {"url": url, "title": post.title, "job_item_id": item.id},
            extra={"destination_content_id": state.content_id},
        )
        return MigrationOutcome(
            item_id=item.id,
            source_url=url,
            title=post.title,
            destination_content_id=state.content_id,
        )

    def rollback(self, state: SagaState) -> int:
        """
        Run every compensation of ``state``.  Failures are logged and the
        remaining compensations still run.

        :return: Number of compensations that failed.
        """
        failures = 0
        for description, action in state.compensations(self.client):
            try:
                action()
            except Exception as e:
                failures += 1
                logger.error("Rollback step '%s' failed for %s: %s", description, state.url, e)
                report_error(
                    "ROLLBACK_FAILED",
                    {"url": state.url, "title": state.title, "job_item_id": state.item_id},
                    e,
                )
        return failures

    def _fail(self, state: SagaState, result: StepResult) -> BaseException:
        """Compensate, mark the item failed and hand back the original error to raise."""
        error = result.error
        logger.error("Migration of %s failed at %s; rolling back", state.url, result.step)
        self.rollback(state)

        try:
            self.ledger.update_item(
                state.item_id,
                status=MigrationJobItemStatus.FAILED,
                error_message=str(error),
            )
        except Exception as e:
            logger.error("Could not mark item %s as failed: %s", state.item_id, e)

        report_error(
            "POST_FAILED",
            {"url": state.url, "title": state.title, "job_item_id": state.item_id},
            error,
        )
        return error
