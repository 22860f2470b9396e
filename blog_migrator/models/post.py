"""
In-memory shapes of a post while it travels through the migration saga.

None of these objects are persisted directly; the ledger keeps its own rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Category:
    name: str
    parent: Optional["Category"] = None

    def lineage(self) -> List[str]:
        """Names from the root category down to this one."""
        names = self.parent.lineage() if self.parent else []
        return names + [self.name]


@dataclass
class Tag:
    name: str


@dataclass
class Image:
    url: str
    alt_text: Optional[str] = None
    media_id: Optional[int] = None
    media_url: Optional[str] = None


@dataclass
class PostMetadata:
    title: str
    publish_date: datetime
    modified_date: Optional[datetime] = None
    categories: List[Category] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)


@dataclass
class Post:
    url: str
    title: str
    content: str
    publish_date: datetime
    modified_date: Optional[datetime] = None
    categories: List[Category] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    featured_image: Optional[Image] = None

    @classmethod
    def from_metadata(cls, url: str, metadata: PostMetadata, content: str) -> "Post":
        return cls(
            url=url,
            title=metadata.title,
            content=content,
            publish_date=metadata.publish_date,
            modified_date=metadata.modified_date,
            categories=list(metadata.categories),
            tags=list(metadata.tags),
        )
