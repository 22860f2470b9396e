import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from blog_migrator.db.ledger import LedgerStore
from blog_migrator.db.schema import TABLE_NAMES
from blog_migrator.models.ledger import (
    ImageAssetStatus,
    MigrationJobItemStatus,
    MigrationJobStatus,
    MigrationJobType,
)
from blog_migrator.utils.errors import PersistenceError

BLOG = "https://example.tistory.com"


@pytest.fixture
def ledger(tmp_path):
    store = LedgerStore(str(tmp_path / "data" / "migration.duckdb"))
    yield store
    store.close()


def test_schema_is_applied_on_first_use(ledger, tmp_path):
    assert not ledger.is_open
    rows = ledger.connection().execute(
        "SELECT table_name FROM information_schema.tables ORDER BY table_name"
    ).fetchall()
    assert set(TABLE_NAMES) <= {r[0] for r in rows}
    assert os.path.exists(tmp_path / "data" / "migration.duckdb")


def test_reopening_keeps_rows_and_schema_is_idempotent(tmp_path):
    path = str(tmp_path / "ledger.duckdb")
    with LedgerStore(path) as first:
        job = first.create_job(MigrationJobType.FULL, BLOG)
    assert not first.is_open
    first.close()

    with LedgerStore(path) as second:
        again = second.get_job(job.id)
        assert again is not None
        assert again.status == MigrationJobStatus.RUNNING.value
        assert again.blog_url == BLOG


def test_job_lifecycle_and_partial_update(ledger):
    job = ledger.create_job(MigrationJobType.SINGLE, BLOG)
    assert job.job_type == "single"
    assert job.status == "running"
    assert job.completed_at is None

    ledger.update_job(job.id)
    assert ledger.get_job(job.id) == job

    ledger.update_job(job.id, status=MigrationJobStatus.COMPLETED, completed_at="2024-01-01T00:00:00+00:00")
    updated = ledger.get_job(job.id)
    assert updated.status == "completed"
    assert updated.completed_at == "2024-01-01T00:00:00+00:00"
    assert updated.error_message is None


def test_latest_job_filters_type_blog_and_status(ledger):
    first = ledger.create_job(MigrationJobType.FULL, BLOG)
    second = ledger.create_job(MigrationJobType.FULL, BLOG)
    ledger.create_job(MigrationJobType.SINGLE, BLOG)
    ledger.create_job(MigrationJobType.FULL, "https://other.tistory.com")
    ledger.update_job(second.id, status=MigrationJobStatus.COMPLETED)

    assert ledger.get_latest_job(MigrationJobType.FULL, BLOG).id == second.id
    assert ledger.get_latest_job(MigrationJobType.FULL, BLOG, MigrationJobStatus.RUNNING).id == first.id
    assert ledger.get_latest_job(MigrationJobType.FULL, "https://missing.tistory.com") is None


def test_items_are_returned_in_insertion_order(ledger):
    job = ledger.create_job(MigrationJobType.FULL, BLOG)
    urls = [f"{BLOG}/{n}" for n in (3, 1, 2)]
    for url in urls:
        ledger.create_item(job.id, url)

    items = ledger.get_items_by_job(job.id)
    assert [i.source_url for i in items] == urls
    assert all(i.status == MigrationJobItemStatus.RUNNING.value for i in items)


def test_update_item_sets_terminal_state_and_timestamp(ledger):
    job = ledger.create_job(MigrationJobType.FULL, BLOG)
    item = ledger.create_item(job.id, f"{BLOG}/1")

    ledger.update_item(item.id, status=MigrationJobItemStatus.SUCCESS, destination_content_id=42)
    updated = ledger.get_item(item.id)
    assert updated.status == "success"
    assert updated.destination_content_id == 42
    assert updated.updated_at >= item.updated_at

    assert [i.id for i in ledger.get_items_by_job_and_status(job.id, MigrationJobItemStatus.SUCCESS)] == [item.id]
    assert ledger.get_items_by_job_and_status(job.id, MigrationJobItemStatus.FAILED) == []


def test_children_require_their_parent(ledger):
    with pytest.raises(PersistenceError):
        ledger.create_item(999, f"{BLOG}/1")
    with pytest.raises(PersistenceError):
        ledger.create_image_asset(999, "https://img/1.png")
    with pytest.raises(PersistenceError):
        ledger.insert_internal_link(999, f"{BLOG}/1", f"{BLOG}/2")


def test_image_asset_lifecycle(ledger):
    job = ledger.create_job(MigrationJobType.FULL, BLOG)
    item = ledger.create_item(job.id, f"{BLOG}/1")
    asset = ledger.create_image_asset(item.id, "https://img/1.png")
    assert asset.status == ImageAssetStatus.PENDING.value

    ledger.update_image_asset(
        asset.id,
        status=ImageAssetStatus.UPLOADED,
        destination_media_id=7,
        destination_media_url="https://wp/1.png",
    )
    failed = ledger.create_image_asset(item.id, "https://img/2.png")
    ledger.update_image_asset(failed.id, status=ImageAssetStatus.FAILED, error_message="HTTP 404")

    assets = ledger.get_assets_by_item(item.id)
    assert [(a.status, a.destination_media_id, a.error_message) for a in assets] == [
        ("uploaded", 7, None),
        ("failed", None, "HTTP 404"),
    ]


def test_post_map_is_insert_once(ledger):
    first = ledger.create_post_map(f"{BLOG}/1", 10)
    second = ledger.create_post_map(f"{BLOG}/1", 20)

    assert second.id == first.id
    assert second.destination_content_id == 10
    assert ledger.get_post_map_by_source_url(f"{BLOG}/1").destination_content_id == 10
    assert ledger.get_post_map_by_source_url(f"{BLOG}/2") is None
    assert len(ledger.get_all_post_maps()) == 1


def test_internal_links_by_item_and_job(ledger):
    job = ledger.create_job(MigrationJobType.FULL, BLOG)
    other_job = ledger.create_job(MigrationJobType.FULL, BLOG)
    item = ledger.create_item(job.id, f"{BLOG}/1")
    other_item = ledger.create_item(other_job.id, f"{BLOG}/9")

    ledger.insert_internal_link(item.id, f"{BLOG}/1", f"{BLOG}/2", link_text="two", context="see two here")
    ledger.insert_internal_link(other_item.id, f"{BLOG}/9", f"{BLOG}/1")

    by_item = ledger.get_internal_links_by_item(item.id)
    assert [(l.target_url, l.link_text, l.context) for l in by_item] == [(f"{BLOG}/2", "two", "see two here")]
    assert [l.job_item_id for l in ledger.get_internal_links_by_job(job.id)] == [item.id]
    assert len(ledger.get_all_internal_links()) == 2


def test_unresolved_failures_exclude_urls_that_later_succeeded(ledger):
    first = ledger.create_job(MigrationJobType.FULL, BLOG)
    second = ledger.create_job(MigrationJobType.FULL, BLOG)
    foreign = ledger.create_job(MigrationJobType.FULL, "https://other.tistory.com")

    fixed = ledger.create_item(first.id, f"{BLOG}/1")
    ledger.update_item(fixed.id, status=MigrationJobItemStatus.FAILED, error_message="timeout")
    ok = ledger.create_item(second.id, f"{BLOG}/1")
    ledger.update_item(ok.id, status=MigrationJobItemStatus.SUCCESS, destination_content_id=5)

    broken = ledger.create_item(second.id, f"{BLOG}/2")
    ledger.update_item(broken.id, status=MigrationJobItemStatus.FAILED, error_message="HTTP 500")

    elsewhere = ledger.create_item(foreign.id, "https://other.tistory.com/3")
    ledger.update_item(elsewhere.id, status=MigrationJobItemStatus.FAILED, error_message="x")

    unresolved = ledger.get_unresolved_failed_items_by_blog(BLOG)
    assert [i.source_url for i in unresolved] == [f"{BLOG}/2"]


def test_summary_counts_the_latest_attempt_per_url(ledger):
    job = ledger.create_job(MigrationJobType.FULL, BLOG)
    retried_fail = ledger.create_item(job.id, f"{BLOG}/1")
    ledger.update_item(retried_fail.id, status=MigrationJobItemStatus.FAILED, error_message="boom")
    retried_ok = ledger.create_item(job.id, f"{BLOG}/1")
    ledger.update_item(retried_ok.id, status=MigrationJobItemStatus.SUCCESS)
    failed = ledger.create_item(job.id, f"{BLOG}/2")
    ledger.update_item(failed.id, status=MigrationJobItemStatus.FAILED, error_message="boom")
    ledger.create_item(job.id, f"{BLOG}/3")

    summary = ledger.summarize_job(job.id)
    assert (summary.total, summary.completed, summary.failed, summary.running) == (3, 1, 1, 1)


def test_close_is_idempotent_and_connection_reopens(ledger):
    ledger.create_job(MigrationJobType.FULL, BLOG)
    ledger.close()
    ledger.close()
    assert not ledger.is_open
    assert ledger.get_latest_job(MigrationJobType.FULL, BLOG) is not None
    assert ledger.is_open


def test_unusable_database_path_raises_persistence_error(tmp_path):
    directory = tmp_path / "not_a_file.duckdb"
    directory.mkdir()
    store = LedgerStore(str(directory))
    with pytest.raises(PersistenceError):
        store.connection()
