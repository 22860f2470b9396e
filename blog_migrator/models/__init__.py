"""
Data shapes shared across the migration: ledger rows, transient posts and
WordPress payloads.
"""

from .ledger import (
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
from .post import Category, Image, Post, PostMetadata, Tag
from .wp_post import CreatedPost, DraftPost, UploadedMedia

__all__ = [
    "Category",
    "CreatedPost",
    "DraftPost",
    "Image",
    "ImageAsset",
    "ImageAssetStatus",
    "InternalLinkRecord",
    "JobSummary",
    "MigrationJob",
    "MigrationJobItem",
    "MigrationJobItemStatus",
    "MigrationJobStatus",
    "MigrationJobType",
    "Post",
    "PostMap",
    "PostMetadata",
    "Tag",
    "UploadedMedia",
]
