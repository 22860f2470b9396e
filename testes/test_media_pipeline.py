import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import logging

import pytest

from blog_migrator.db.ledger import LedgerStore
from blog_migrator.models.ledger import MigrationJobType
from blog_migrator.services.media_pipeline import MediaPipeline, extension_for, slugify_title
from blog_migrator.utils.errors import MediaDownloadError, PersistenceError
from blog_migrator.utils.retry import RetryPolicy
from fakes import BLOG_URL, FakeResponse, FakeSession, FakeWordPressClient, image_handler


@pytest.fixture
def ledger(tmp_path):
    with LedgerStore(str(tmp_path / "ledger.duckdb")) as store:
        yield store


@pytest.fixture
def item(ledger):
    job = ledger.create_job(MigrationJobType.SINGLE, BLOG_URL)
    return ledger.create_item(job.id, f"{BLOG_URL}/1")


def make_pipeline(ledger, handler=None, client=None):
    session = FakeSession(handler or image_handler())
    pipeline = MediaPipeline(
        client or FakeWordPressClient(),
        ledger,
        RetryPolicy(max_attempts=2, initial_delay=0, max_delay=0),
        session=session,
        sleep_fn=lambda _: None,
    )
    return pipeline, session


def test_slugify_title():
    assert slugify_title("Hello World From Python Land") == "hello-world-from-pyt"
    assert slugify_title("안녕하세요") == "post"
    assert slugify_title("  C++ & Rust!  ") == "c-rust"


@pytest.mark.parametrize(
    "content_type,expected",
    [
        ("image/jpeg", ".jpg"),
        ("image/png; charset=binary", ".png"),
        ("image/webp", ".webp"),
        ("application/x-unknown-thing", ".jpg"),
        (None, ".jpg"),
    ],
)
def test_extension_for(content_type, expected):
    assert extension_for(content_type) == expected


def test_body_images_are_uploaded_and_rewritten(ledger, item):
    client = FakeWordPressClient()
    pipeline, session = make_pipeline(ledger, image_handler("image/jpeg"), client)
    html = (
        '<p><img src="https://blog.kakaocdn.net/a.jpg" alt="first" srcset="a 2x"></p>'
        '<img src="https://blog.kakaocdn.net/b.jpg">'
    )
    uploaded = []

    result = pipeline.process_images(item.id, "My Post", html, uploaded)

    assert [u["file_name"] for u in client.uploads] == ["my-post-image-1.jpg", "my-post-image-2.jpg"]
    assert client.uploads[0]["alt_text"] == "first"
    assert [i.media_id for i in uploaded] == [u["id"] for u in client.uploads]
    assert "kakaocdn" not in result
    assert "srcset" not in result
    assert "/wp-content/uploads/my-post-image-1.jpg" in result

    assets = ledger.get_assets_by_item(item.id)
    assert [(a.status, a.destination_media_url) for a in assets] == [
        ("uploaded", f"{i.media_url}") for i in uploaded
    ]


def test_card_and_inline_data_images_are_left_alone(ledger, item):
    client = FakeWordPressClient()
    pipeline, session = make_pipeline(ledger, client=client)
    html = (
        '<div class="bookmark-card"><a href="https://x"><img src="https://x/thumb.png"></a></div>'
        '<img src="data:image/png;base64,AAAA">'
    )

    assert pipeline.process_images(item.id, "Post", html, []) == html
    assert client.uploads == []
    assert session.calls == []
    assert ledger.get_assets_by_item(item.id) == []


def test_failed_download_marks_asset_failed_and_keeps_earlier_uploads(ledger, item):
    client = FakeWordPressClient()
    broken = "https://blog.kakaocdn.net/broken.png"
    pipeline, session = make_pipeline(ledger, image_handler(failing=(broken,)), client)
    html = f'<img src="https://blog.kakaocdn.net/ok.png"><img src="{broken}">'
    uploaded = []

    with pytest.raises(MediaDownloadError):
        pipeline.process_images(item.id, "Post", html, uploaded)

    assert len(uploaded) == 1
    assert len(session.calls_to("GET", "broken.png")) == 2
    assets = ledger.get_assets_by_item(item.id)
    assert [a.status for a in assets] == ["uploaded", "failed"]
    assert "404" in assets[1].error_message


def test_featured_image_gets_its_own_name(ledger, item):
    client = FakeWordPressClient()
    pipeline, _ = make_pipeline(ledger, image_handler("image/png"), client)

    image = pipeline.process_featured_image(item.id, "Cover Story", "https://blog.kakaocdn.net/cover")

    assert client.uploads[0]["file_name"] == "cover-story-featured.png"
    assert image.media_id == client.uploads[0]["id"]
    assert ledger.get_assets_by_item(item.id)[0].source_url == "https://blog.kakaocdn.net/cover"


def test_upload_is_reported_before_the_ledger_is_updated(ledger, item, monkeypatch):
    client = FakeWordPressClient()
    pipeline, _ = make_pipeline(ledger, image_handler(), client)
    seen = []

    def broken_update(asset_id, **fields):
        raise PersistenceError("disk full")

    monkeypatch.setattr(ledger, "update_image_asset", broken_update)

    with pytest.raises(PersistenceError):
        pipeline.process_featured_image(item.id, "Post", "https://blog.kakaocdn.net/a.png", on_uploaded=seen.append)

    assert [i.media_id for i in seen] == [client.uploads[0]["id"]]


def test_ledger_failure_while_marking_failed_keeps_the_download_error(ledger, item, monkeypatch):
    broken = "https://blog.kakaocdn.net/broken.png"
    pipeline, _ = make_pipeline(ledger, image_handler(failing=(broken,)))

    def broken_update(asset_id, **fields):
        raise PersistenceError("disk full")

    monkeypatch.setattr(ledger, "update_image_asset", broken_update)

    with pytest.raises(MediaDownloadError):
        pipeline.process_images(item.id, "Post", f'<img src="{broken}">', [])


def test_each_download_retry_is_logged_once(ledger, item, caplog):
    calls = []
    ok = image_handler()

    def flaky(method, url, kwargs):
        calls.append(url)
        if len(calls) == 1:
            return FakeResponse(503, reason="Service Unavailable")
        return ok(method, url, kwargs)

    pipeline, _ = make_pipeline(ledger, flaky)
    caplog.set_level(logging.WARNING)

    pipeline.process_featured_image(item.id, "Post", "https://blog.kakaocdn.net/a.png")

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "Retrying image download" in warnings[0].getMessage()
