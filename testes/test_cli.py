import csv
import json
import os
import signal
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from blog_migrator import cli
from blog_migrator.config import _ENV_OVERRIDES
from blog_migrator.db.ledger import LedgerStore
from blog_migrator.utils.errors import PreFlightCheckError
from fakes import BLOG_URL, WP_URL


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for _, _, env_name, _ in _ENV_OVERRIDES:
        monkeypatch.delenv(env_name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "migration_config.json"
    path.write_text(
        json.dumps(
            {
                "source": {"blog_url": BLOG_URL},
                "wordpress": {"base_url": WP_URL, "app_user": "admin", "app_password": "secret"},
                "migration": {
                    "db_path": str(tmp_path / "data" / "migration.duckdb"),
                    "output_dir": str(tmp_path / "output"),
                    "reports_dir": str(tmp_path / "reports"),
                },
                "logging": {"level": "info", "file": None},
            }
        ),
        encoding="utf-8",
    )
    return path


class RecordingTool:
    instances = []

    def __init__(self, settings, ledger):
        self.settings = settings
        self.calls = []
        RecordingTool.instances.append(self)

    def request_stop(self):
        self.calls.append("stop")

    def migrate_all(self, retry_failed=False):
        self.calls.append(("all", retry_failed))
        return 0

    def migrate_single(self, url):
        self.calls.append(("single", url))
        return 1


@pytest.fixture
def recording_tool(monkeypatch):
    RecordingTool.instances = []
    monkeypatch.setattr(cli, "MigrationTool", RecordingTool)
    return RecordingTool


def test_no_action_prints_usage(capsys):
    assert cli.main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_invalid_post_url_is_rejected(capsys):
    assert cli.main(["--post", "not-a-url"]) == 1
    assert "Invalid post URL" in capsys.readouterr().out


def test_missing_configuration_fails(tmp_path):
    assert cli.main(["--config", str(tmp_path / "missing.json"), "--all"]) == 1


def test_post_and_all_are_mutually_exclusive():
    with pytest.raises(SystemExit):
        cli.main(["--post", f"{BLOG_URL}/1", "--all"])


def test_export_post_map_without_migrating(config_file, tmp_path, recording_tool):
    with LedgerStore(str(tmp_path / "data" / "migration.duckdb")) as ledger:
        ledger.create_post_map(f"{BLOG_URL}/1", 11)

    assert cli.main(["--config", str(config_file), "--export-post-map"]) == 0

    with open(tmp_path / "output" / "post_map.csv", newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows == [["source_url", "destination_content_id"], [f"{BLOG_URL}/1", "11"]]


def test_all_with_retry_skips_preflight_when_asked(config_file, monkeypatch, recording_tool):
    def fail_preflight(settings):
        raise AssertionError("pre-flight should not run")

    monkeypatch.setattr(cli, "run_wordpress_pre_flight_checks", fail_preflight)
    before = signal.getsignal(signal.SIGINT)

    assert cli.main(["--config", str(config_file), "--retry-failed", "--skip-preflight"]) == 0

    (tool,) = recording_tool.instances
    assert tool.calls == [("all", True)]
    assert signal.getsignal(signal.SIGINT) is before


def test_single_post_exit_code_comes_from_the_tool(config_file, monkeypatch, recording_tool):
    monkeypatch.setattr(cli, "run_wordpress_pre_flight_checks", lambda settings: None)

    assert cli.main(["--config", str(config_file), "--post", f"{BLOG_URL}/7"]) == 1
    assert recording_tool.instances[0].calls == [("single", f"{BLOG_URL}/7")]


def test_preflight_failure_stops_before_migrating(config_file, monkeypatch, recording_tool):
    def reject(settings):
        raise PreFlightCheckError("credentials rejected")

    monkeypatch.setattr(cli, "run_wordpress_pre_flight_checks", reject)

    assert cli.main(["--config", str(config_file), "--all"]) == 1
    assert recording_tool.instances == []
