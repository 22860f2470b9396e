"""
Durable ledger of migration jobs, job items, image assets, post mappings and
internal links.

:class:`LedgerStore` is the single source of truth for resume and reporting
decisions.  It owns one DuckDB connection which is opened lazily on first use,
gets the schema applied idempotently and is shared by every worker thread.
Each public method runs one statement (or one insert plus its lookup) under a
lock, so every row mutation is atomic; nothing spans several calls.

Typical use::

    with LedgerStore("data/migration.duckdb") as ledger:
        job = ledger.create_job(MigrationJobType.FULL, blog_url)
        item = ledger.create_item(job.id, "https://example.tistory.com/1")
        ledger.update_item(item.id, status=MigrationJobItemStatus.SUCCESS)
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import duckdb

from blog_migrator.db.schema import SCHEMA_STATEMENTS
from blog_migrator.models.ledger import (
    ImageAsset,
    ImageAssetStatus,
    InternalLinkRecord,
    JobSummary,
    MigrationJob,
    MigrationJobItem,
    MigrationJobItemStatus,
    MigrationJobStatus,
    MigrationJobType,
    PostMap,
)
from blog_migrator.utils.errors import PersistenceError

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")

_UNSET: Any = object()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _value(v: Any) -> Any:
    return v.value if hasattr(v, "value") else v


class LedgerStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._con: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def __enter__(self) -> "LedgerStore":
        self.connection()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def connection(self) -> duckdb.DuckDBPyConnection:
        """Return the shared connection, opening it and applying the schema on first use."""
        with self._lock:
            if self._con is not None:
                return self._con

            directory = os.path.dirname(self.db_path)
            if directory and not os.path.exists(directory):
                os.makedirs(directory, exist_ok=True)
                logger.info("Created ledger directory: %s", directory)

            try:
                con = duckdb.connect(database=self.db_path, read_only=False)
            except duckdb.Error as e:
                raise PersistenceError(f"Could not open ledger {self.db_path}: {e}") from e
            logger.info("Opened ledger database: %s", self.db_path)

            try:
                for statement in SCHEMA_STATEMENTS:
                    con.execute(statement)
            except duckdb.Error as e:
                logger.error("Failed to apply ledger schema: %s", e)
                con.close()
                raise PersistenceError(f"Failed to apply ledger schema: {e}") from e

            self._con = con
            return con

    def close(self) -> None:
        """Close the connection, flushing pending writes.  Safe to call twice."""
        with self._lock:
            if self._con is None:
                return
            self._con.close()
            self._con = None
            logger.info("Closed ledger database: %s", self.db_path)

    @property
    def is_open(self) -> bool:
        return self._con is not None

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------
    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self._lock:
            con = self.connection()
            try:
                cur = con.execute(sql, list(params))
                if cur.description is None:
                    return []
                columns = [d[0] for d in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
            except duckdb.Error as e:
                raise PersistenceError(f"Ledger statement failed: {e}") from e

    def _one(self, model: Type[RowT], sql: str, params: Sequence[Any] = ()) -> Optional[RowT]:
        rows = self._query(sql, params)
        return model(**rows[0]) if rows else None

    def _many(self, model: Type[RowT], sql: str, params: Sequence[Any] = ()) -> List[RowT]:
        return [model(**row) for row in self._query(sql, params)]

    def _update(self, table: str, row_id: int, fields: Dict[str, Any]) -> None:
        fields = {k: _value(v) for k, v in fields.items() if v is not _UNSET}
        if not fields:
            return
        assignments = ", ".join(f"{column} = ?" for column in fields)
        self._query(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            [*fields.values(), row_id],
        )

    def _require(self, table: str, row_id: int, what: str) -> None:
        if not self._query(f"SELECT 1 FROM {table} WHERE id = ?", [row_id]):
            raise PersistenceError(f"{what} {row_id} does not exist")

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    def create_job(self, job_type: MigrationJobType, blog_url: str) -> MigrationJob:
        job = self._one(
            MigrationJob,
            "INSERT INTO migration_jobs (blog_url, job_type, status, created_at) "
            "VALUES (?, ?, ?, ?) RETURNING *",
            [blog_url, _value(job_type), MigrationJobStatus.RUNNING.value, utc_now()],
        )
        logger.info("Created migration job %s (%s)", job.id, job.job_type)
        return job

    def update_job(
        self,
        job_id: int,
        *,
        status: Any = _UNSET,
        completed_at: Any = _UNSET,
        error_message: Any = _UNSET,
    ) -> None:
        """Partial update; only the supplied fields are written."""
        self._update(
            "migration_jobs",
            job_id,
            {"status": status, "completed_at": completed_at, "error_message": error_message},
        )

    def get_job(self, job_id: int) -> Optional[MigrationJob]:
        return self._one(MigrationJob, "SELECT * FROM migration_jobs WHERE id = ?", [job_id])

    def get_latest_job(
        self,
        job_type: MigrationJobType,
        blog_url: str,
        status: Optional[MigrationJobStatus] = None,
    ) -> Optional[MigrationJob]:
        sql = "SELECT * FROM migration_jobs WHERE job_type = ? AND blog_url = ?"
        params: List[Any] = [_value(job_type), blog_url]
        if status is not None:
            sql += " AND status = ?"
            params.append(_value(status))
        return self._one(MigrationJob, sql + " ORDER BY id DESC LIMIT 1", params)

    # ------------------------------------------------------------------
    # Job items
    # ------------------------------------------------------------------
    def create_item(
        self,
        job_id: int,
        source_url: str,
        status: MigrationJobItemStatus = MigrationJobItemStatus.RUNNING,
    ) -> MigrationJobItem:
        with self._lock:
            self._require("migration_jobs", job_id, "Migration job")
            now = utc_now()
            return self._one(
                MigrationJobItem,
                "INSERT INTO migration_job_items (job_id, source_url, status, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?) RETURNING *",
                [job_id, source_url, _value(status), now, now],
            )

    def update_item(
        self,
        item_id: int,
        *,
        status: Any = _UNSET,
        destination_content_id: Any = _UNSET,
        error_message: Any = _UNSET,
        updated_at: Any = _UNSET,
    ) -> None:
        fields = {
            "status": status,
            "destination_content_id": destination_content_id,
            "error_message": error_message,
        }
        if any(v is not _UNSET for v in fields.values()):
            fields["updated_at"] = utc_now() if updated_at is _UNSET else updated_at
        self._update("migration_job_items", item_id, fields)

    def get_item(self, item_id: int) -> Optional[MigrationJobItem]:
        return self._one(MigrationJobItem, "SELECT * FROM migration_job_items WHERE id = ?", [item_id])

    def get_items_by_job(self, job_id: int) -> List[MigrationJobItem]:
        return self._many(
            MigrationJobItem,
            "SELECT * FROM migration_job_items WHERE job_id = ? ORDER BY id",
            [job_id],
        )

    def get_items_by_job_and_status(
        self, job_id: int, status: MigrationJobItemStatus
    ) -> List[MigrationJobItem]:
        return self._many(
            MigrationJobItem,
            "SELECT * FROM migration_job_items WHERE job_id = ? AND status = ? ORDER BY id",
            [job_id, _value(status)],
        )

    def get_unresolved_failed_items_by_blog(self, blog_url: str) -> List[MigrationJobItem]:
        """Failed items of ``blog_url`` whose URL never succeeded in any job of that blog."""
        return self._many(
            MigrationJobItem,
            """
            SELECT i.* FROM migration_job_items i
            JOIN migration_jobs j ON j.id = i.job_id
            WHERE j.blog_url = ? AND i.status = ?
              AND NOT EXISTS (
                SELECT 1 FROM migration_job_items s
                JOIN migration_jobs sj ON sj.id = s.job_id
                WHERE sj.blog_url = j.blog_url
                  AND s.source_url = i.source_url
                  AND s.status = ?
              )
            ORDER BY i.id
            """,
            [blog_url, MigrationJobItemStatus.FAILED.value, MigrationJobItemStatus.SUCCESS.value],
        )

    def summarize_job(self, job_id: int) -> JobSummary:
        """Count the latest attempt of every source URL in ``job_id``."""
        rows = self._query(
            """
            SELECT status, COUNT(*) AS n FROM migration_job_items
            WHERE id IN (
                SELECT MAX(id) FROM migration_job_items WHERE job_id = ? GROUP BY source_url
            )
            GROUP BY status
            """,
            [job_id],
        )
        counts = {row["status"]: int(row["n"]) for row in rows}
        return JobSummary(
            job_id=job_id,
            total=sum(counts.values()),
            completed=counts.get(MigrationJobItemStatus.SUCCESS.value, 0),
            failed=counts.get(MigrationJobItemStatus.FAILED.value, 0),
            running=counts.get(MigrationJobItemStatus.RUNNING.value, 0)
            + counts.get(MigrationJobItemStatus.PENDING.value, 0),
        )

    # ------------------------------------------------------------------
    # Image assets
    # ------------------------------------------------------------------
    def create_image_asset(self, job_item_id: int, source_url: str) -> ImageAsset:
        with self._lock:
            self._require("migration_job_items", job_item_id, "Migration job item")
            now = utc_now()
            return self._one(
                ImageAsset,
                "INSERT INTO migration_image_assets (job_item_id, source_url, status, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?) RETURNING *",
                [job_item_id, source_url, ImageAssetStatus.PENDING.value, now, now],
            )

    def update_image_asset(
        self,
        asset_id: int,
        *,
        status: Any = _UNSET,
        destination_media_id: Any = _UNSET,
        destination_media_url: Any = _UNSET,
        error_message: Any = _UNSET,
    ) -> None:
        fields = {
            "status": status,
            "destination_media_id": destination_media_id,
            "destination_media_url": destination_media_url,
            "error_message": error_message,
        }
        if any(v is not _UNSET for v in fields.values()):
            fields["updated_at"] = utc_now()
        self._update("migration_image_assets", asset_id, fields)

    def get_assets_by_item(self, job_item_id: int) -> List[ImageAsset]:
        return self._many(
            ImageAsset,
            "SELECT * FROM migration_image_assets WHERE job_item_id = ? ORDER BY id",
            [job_item_id],
        )

    # ------------------------------------------------------------------
    # Post map
    # ------------------------------------------------------------------
    def create_post_map(self, source_url: str, destination_content_id: int) -> PostMap:
        """Insert the mapping once; an existing row for ``source_url`` is returned unchanged."""
        with self._lock:
            created = self._one(
                PostMap,
                "INSERT INTO post_map (source_url, destination_content_id, created_at) "
                "VALUES (?, ?, ?) ON CONFLICT (source_url) DO NOTHING RETURNING *",
                [source_url, destination_content_id, utc_now()],
            )
            if created is not None:
                return created
            existing = self.get_post_map_by_source_url(source_url)
            logger.warning(
                "Post map for %s already points to %s; keeping it",
                source_url,
                existing.destination_content_id if existing else None,
            )
            return existing

    def get_post_map_by_source_url(self, source_url: str) -> Optional[PostMap]:
        return self._one(PostMap, "SELECT * FROM post_map WHERE source_url = ?", [source_url])

    def get_all_post_maps(self) -> List[PostMap]:
        return self._many(PostMap, "SELECT * FROM post_map ORDER BY id")

    # ------------------------------------------------------------------
    # Internal links
    # ------------------------------------------------------------------
    def insert_internal_link(
        self,
        job_item_id: int,
        source_url: str,
        target_url: str,
        link_text: Optional[str] = None,
        context: Optional[str] = None,
    ) -> InternalLinkRecord:
        with self._lock:
            self._require("migration_job_items", job_item_id, "Migration job item")
            return self._one(
                InternalLinkRecord,
                "INSERT INTO internal_links (job_item_id, source_url, target_url, link_text, context, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?) RETURNING *",
                [job_item_id, source_url, target_url, link_text, context, utc_now()],
            )

    def get_internal_links_by_item(self, job_item_id: int) -> List[InternalLinkRecord]:
        return self._many(
            InternalLinkRecord,
            "SELECT * FROM internal_links WHERE job_item_id = ? ORDER BY id",
            [job_item_id],
        )

    def get_internal_links_by_job(self, job_id: int) -> List[InternalLinkRecord]:
        return self._many(
            InternalLinkRecord,
            "SELECT l.* FROM internal_links l "
            "JOIN migration_job_items i ON i.id = l.job_item_id "
            "WHERE i.job_id = ? ORDER BY l.id",
            [job_id],
        )

    def get_all_internal_links(self) -> List[InternalLinkRecord]:
        return self._many(InternalLinkRecord, "SELECT * FROM internal_links ORDER BY id")
