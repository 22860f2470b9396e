import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import csv
import json

import pytest

from blog_migrator.db.ledger import LedgerStore
from blog_migrator.models.ledger import MigrationJobItemStatus, MigrationJobType
from blog_migrator.services.exporters import export_failed_posts, export_link_mapping, generate_post_map_csv
from fakes import BLOG_URL


@pytest.fixture
def ledger(tmp_path):
    with LedgerStore(str(tmp_path / "ledger.duckdb")) as store:
        yield store


def fail(ledger, job_id, url, message):
    item = ledger.create_item(job_id, url)
    ledger.update_item(item.id, status=MigrationJobItemStatus.FAILED, error_message=message)
    return item


def test_failed_posts_are_grouped_with_distinct_messages(ledger, tmp_path):
    first = ledger.create_job(MigrationJobType.FULL, BLOG_URL)
    second = ledger.create_job(MigrationJobType.FULL, BLOG_URL)
    fail(ledger, first.id, f"{BLOG_URL}/1", "timeout")
    fail(ledger, second.id, f"{BLOG_URL}/1", "timeout")
    fail(ledger, second.id, f"{BLOG_URL}/1", "HTTP 500")
    fail(ledger, first.id, f"{BLOG_URL}/2", "HTTP 404")
    ok = ledger.create_item(second.id, f"{BLOG_URL}/2")
    ledger.update_item(ok.id, status=MigrationJobItemStatus.SUCCESS)

    path = tmp_path / "out" / "failed_posts.json"
    data = export_failed_posts(ledger, str(path), BLOG_URL)

    assert json.loads(path.read_text(encoding="utf-8")) == data
    assert data["blog_url"] == BLOG_URL
    assert data["count"] == 1
    assert data["items"] == [{"source_url": f"{BLOG_URL}/1", "error_messages": ["timeout", "HTTP 500"]}]
    assert data["exported_at"]


def test_link_mapping_resolves_migrated_targets(ledger, tmp_path):
    job = ledger.create_job(MigrationJobType.FULL, BLOG_URL)
    other = ledger.create_job(MigrationJobType.FULL, BLOG_URL)
    item = ledger.create_item(job.id, f"{BLOG_URL}/1")
    other_item = ledger.create_item(other.id, f"{BLOG_URL}/5")
    ledger.insert_internal_link(item.id, f"{BLOG_URL}/1", f"{BLOG_URL}/2", link_text="two")
    ledger.insert_internal_link(item.id, f"{BLOG_URL}/1", f"{BLOG_URL}/3")
    ledger.insert_internal_link(other_item.id, f"{BLOG_URL}/5", f"{BLOG_URL}/1")
    ledger.create_post_map(f"{BLOG_URL}/1", 101)
    ledger.create_post_map(f"{BLOG_URL}/2", 102)

    path = tmp_path / "links.json"
    data = export_link_mapping(ledger, str(path), job_id=job.id)

    assert data["count"] == 2
    assert [(l["target_url"], l["source_destination_id"], l["target_destination_id"]) for l in data["links"]] == [
        (f"{BLOG_URL}/2", 101, 102),
        (f"{BLOG_URL}/3", 101, None),
    ]
    assert export_link_mapping(ledger, str(path))["count"] == 3
    assert json.loads(path.read_text(encoding="utf-8"))["job_id"] is None


def test_post_map_csv(ledger, tmp_path):
    ledger.create_post_map(f"{BLOG_URL}/1", 101)
    ledger.create_post_map(f"{BLOG_URL}/2", 102)

    path = generate_post_map_csv(ledger, str(tmp_path / "nested" / "post_map.csv"))

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows == [
        ["source_url", "destination_content_id"],
        [f"{BLOG_URL}/1", "101"],
        [f"{BLOG_URL}/2", "102"],
    ]
