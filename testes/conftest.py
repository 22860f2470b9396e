import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from blog_migrator.utils import errors


@pytest.fixture(autouse=True)
def report_dir(tmp_path, monkeypatch):
    """Keep the JSON Lines reports of every test inside its tmp_path."""
    path = tmp_path / "reports"
    monkeypatch.setattr(errors, "_report_dir", str(path))
    return path
