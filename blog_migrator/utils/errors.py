"""
Error types and structured outcome reports for the migration.

The :mod:`blog_migrator.utils.errors` module centralizes two things:

* the exception taxonomy raised by the migration engine (configuration,
  persistence and destination API failures), and
* the writing of per-post outcome entries.  Each entry is appended to a JSON
  Lines file under the reports directory so that the information can be
  reviewed or parsed after a run.  A report that cannot be written is logged
  and dropped; it never interrupts the migration.

Two public report functions are provided:

``report_error``
    Record an error that occurred for a post.  An optional exception can be
    supplied and will be serialized to the log.

``report_ok``
    Record a successful step for a post.  Additional key/value information can
    be attached to the entry via the ``extra`` parameter.

The ``EVENTS`` dictionary maps event codes to human readable messages.  Codes
not present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Base class for errors raised by the migration engine."""


class ConfigurationError(MigrationError):
    """Configuration is missing or invalid.  Always fatal and pre-flight."""


class PreFlightCheckError(MigrationError):
    """The destination site is not usable with the configured credentials."""


class PersistenceError(MigrationError):
    """The ledger could not complete an operation.  Never retried."""


class MediaDownloadError(MigrationError):
    """A source asset could not be downloaded."""


class DestinationApiError(MigrationError):
    """An HTTP error answered by the WordPress REST API.

    The message keeps the HTTP status, reason and the ``message`` field of the
    response body so the ledger row explains what the destination rejected.
    """

    def __init__(
        self,
        status: Optional[int],
        message: str,
        *,
        operation: str = "",
        code: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.operation = operation
        self.code = code
        self.data = data or {}

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


# Mapping of event codes used throughout the migration to descriptive messages.
EVENTS: Dict[str, str] = {
    "POST_MIGRATED": "Post migrated to a WordPress draft",
    "POST_FAILED": "Post migration failed and was rolled back",
    "ROLLBACK_FAILED": "A compensating delete failed during rollback",
    "JOB_FINALIZED": "Migration job finalized",
}

_DEFAULT_REPORT_DIR = os.path.join("reports", "migration")
_report_dir = _DEFAULT_REPORT_DIR
_write_lock = threading.Lock()


def set_report_dir(path: str) -> None:
    """Redirect the JSON Lines reports to ``path``."""
    global _report_dir
    _report_dir = path


def _write_jsonl(filename: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline."""
    with _write_lock:
        os.makedirs(_report_dir, exist_ok=True)
        with open(os.path.join(_report_dir, filename), "a", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
            f.write("\n")


def _append_report(filename: str, entry: Dict[str, Any]) -> None:
    try:
        _write_jsonl(filename, entry)
    except Exception as e:
        logger.error("Could not write %s entry to %s: %s", entry.get("code"), filename, e)


def report_error(code: str, post: Dict[str, Any], exc: Optional[BaseException] = None) -> None:
    """Log an error event for ``post``.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`EVENTS` its value will be used as the message.
    post:
        Context of the post.  Only the ``url``, ``title`` and ``job_item_id``
        keys are referenced if present.
    exc:
        Optional exception instance that triggered the error.  The string
        representation of the exception will be included in the log entry.
    """
    message = EVENTS.get(code, code)
    entry: Dict[str, Any] = {
        "code": code,
        "message": message,
        "url": post.get("url"),
        "title": post.get("title"),
        "job_item_id": post.get("job_item_id"),
    }
    if exc is not None:
        entry["error"] = str(exc)
    _append_report("errors.jsonl", entry)


def report_ok(code: str, post: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> None:
    """Log a successful event for ``post``.

    Parameters
    ----------
    code:
        A key identifying the type of event.
    post:
        Context of the post (``url``, ``title``, ``job_item_id``).
    extra:
        Optional dictionary of additional fields to merge into the log entry.
    """
    message = EVENTS.get(code, code)
    entry: Dict[str, Any] = {
        "code": code,
        "message": message,
        "url": post.get("url"),
        "title": post.get("title"),
        "job_item_id": post.get("job_item_id"),
    }
    if extra:
        entry.update(extra)
    _append_report("success.jsonl", entry)
