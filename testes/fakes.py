"""
In-memory stand-ins for HTTP sessions and settings used across the tests.
"""

import os
import sys
import threading
from typing import Any, Callable, Dict, List, Optional

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import requests

from blog_migrator.config import load_settings
from blog_migrator.models.wp_post import CreatedPost, UploadedMedia


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        content: bytes = b"",
        text: Optional[str] = None,
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self._json = json_data
        self.headers = headers or {}
        self.content = content
        self.text = text if text is not None else (content.decode("utf-8", "ignore") if content else "")
        self.reason = reason or ("OK" if status_code < 400 else "Error")

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


Handler = Callable[[str, str, Dict[str, Any]], FakeResponse]


class FakeSession:
    """Routes every request to ``handler(method, url, kwargs)`` and records it."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []
        self.auth = None
        self.headers: Dict[str, str] = {}

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.handler(method, url, kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("GET", url, **kwargs)

    def calls_to(self, method: str, fragment: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method and fragment in c["url"]]


BLOG_URL = "https://example.tistory.com"
WP_URL = "https://wp.example.com"
API_BASE = f"{WP_URL}/wp-json/wp/v2"


def make_settings(tmp_path=None, **migration: Any):
    migration_section: Dict[str, Any] = {
        "worker_count": 1,
        "rate_limit_interval_ms": 1,
        "rate_limit_cap": 100,
        "max_retry_attempts": 2,
        "retry_initial_delay_ms": 0,
        "retry_max_delay_ms": 0,
    }
    if tmp_path is not None:
        migration_section["db_path"] = str(tmp_path / "data" / "migration.duckdb")
        migration_section["output_dir"] = str(tmp_path / "output")
        migration_section["reports_dir"] = str(tmp_path / "reports")
    migration_section.update(migration)
    return load_settings(
        {
            "source": {"blog_url": BLOG_URL},
            "wordpress": {"base_url": WP_URL, "app_user": "admin", "app_password": "secret"},
            "migration": migration_section,
            "logging": {"level": "debug", "file": None},
        },
        environ={},
    )


def post_page(
    title: str = "Hello World",
    *,
    body: str = "<p>Body</p>",
    categories=("Dev", "Python"),
    tags=("#python", "#tips"),
    featured: Optional[str] = None,
    published: str = "2023-05-01T10:00:00+09:00",
) -> str:
    """A minimal Tistory post page matching the default selectors."""
    og_image = f'<meta property="og:image" content="{featured}">' if featured else ""
    category_links = "".join(f'<a href="/category/{c}">{c}</a>' for c in categories)
    tag_links = "".join(f'<a rel="tag" href="/tag/{t}">{t}</a>' for t in tags)
    return f"""
    <html><head>
      <meta name="title" content="{title}">
      <meta property="article:published_time" content="{published}">
      {og_image}
    </head><body>
      <div class="another_category"><h4>{category_links}</h4></div>
      <div class="tt_article_useless_p_margin contents_style">{body}<script>track()</script></div>
      <div class="area_tag">{tag_links}</div>
    </body></html>
    """


def image_handler(content_type: str = "image/png", failing: tuple = ()) -> Handler:
    """Serve image bytes for any URL, answering 404 for URLs in ``failing``."""

    def handler(method: str, url: str, kwargs: Dict[str, Any]) -> FakeResponse:
        if url in failing:
            return FakeResponse(404, reason="Not Found")
        return FakeResponse(200, content=b"img:" + url.encode(), headers={"Content-Type": content_type})

    return handler


class FakeWordPressClient:
    """Records every destination call; failures are switched on per test."""

    def __init__(self) -> None:
        self._next_id = 100
        self._id_lock = threading.Lock()
        self.uploads: List[Dict[str, Any]] = []
        self.drafts: List[Any] = []
        self.deleted_media: List[int] = []
        self.deleted_posts: List[int] = []
        self.category_calls: List[Any] = []
        self.tag_calls: List[str] = []
        self.fail_create: Optional[BaseException] = None
        self.fail_upload_on: Optional[int] = None
        self.fail_delete_media: set = set()

    def _id(self) -> int:
        with self._id_lock:
            self._next_id += 1
            return self._next_id

    def upload_media(self, file_name, mime_type, data, *, alt_text=None, title=None):
        if self.fail_upload_on is not None and len(self.uploads) + 1 == self.fail_upload_on:
            raise RuntimeError(f"upload of {file_name} rejected")
        media_id = self._id()
        self.uploads.append({"id": media_id, "file_name": file_name, "mime_type": mime_type, "alt_text": alt_text})
        return UploadedMedia(
            id=media_id,
            source_url=f"{WP_URL}/wp-content/uploads/{file_name}",
            media_type="image",
            mime_type=mime_type,
        )

    def delete_media(self, media_id: int) -> None:
        if media_id in self.fail_delete_media:
            raise RuntimeError(f"cannot delete media {media_id}")
        self.deleted_media.append(media_id)

    def delete_post(self, post_id: int) -> None:
        self.deleted_posts.append(post_id)

    def create_draft_post(self, draft):
        if self.fail_create is not None:
            raise self.fail_create
        self.drafts.append(draft)
        post_id = self._id()
        return CreatedPost(id=post_id, status="draft", link=f"{WP_URL}/?p={post_id}")

    def ensure_category(self, name: str, parent_id: int = 0) -> int:
        self.category_calls.append((name, parent_id))
        return 1000 + len(self.category_calls)

    def ensure_tag(self, name: str) -> int:
        self.tag_calls.append(name)
        return 2000 + len(self.tag_calls)
