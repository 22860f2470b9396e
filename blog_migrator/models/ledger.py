from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MigrationJobType(str, Enum):
    FULL = "full"
    SINGLE = "single"


class MigrationJobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class MigrationJobItemStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class ImageAssetStatus(str, Enum):
    PENDING = "pending"
    UPLOADED = "uploaded"
    FAILED = "failed"


class _Row(BaseModel):
    model_config = ConfigDict(use_enum_values=True, frozen=True)


class MigrationJob(_Row):
    id: int
    blog_url: str
    job_type: MigrationJobType
    status: MigrationJobStatus
    created_at: str
    completed_at: Optional[str] = None
    error_message: Optional[str] = None


class MigrationJobItem(_Row):
    id: int
    job_id: int
    source_url: str
    destination_content_id: Optional[int] = None
    status: MigrationJobItemStatus
    error_message: Optional[str] = None
    created_at: str
    updated_at: str


class ImageAsset(_Row):
    id: int
    job_item_id: int
    source_url: str
    destination_media_id: Optional[int] = None
    destination_media_url: Optional[str] = None
    status: ImageAssetStatus
    error_message: Optional[str] = None
    created_at: str
    updated_at: str


class PostMap(_Row):
    id: int
    source_url: str
    destination_content_id: int
    created_at: str


class InternalLinkRecord(_Row):
    id: int
    job_item_id: int
    source_url: str
    target_url: str
    link_text: Optional[str] = None
    context: Optional[str] = None
    created_at: str


class JobSummary(_Row):
    """Counts over the latest attempt of every source URL of a job."""

    job_id: int
    total: int
    completed: int
    failed: int
    running: int
