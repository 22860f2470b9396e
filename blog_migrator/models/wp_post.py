from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DraftPost(BaseModel):
    """Payload of ``POST /wp/v2/posts``.  Migration never publishes."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    title: str = Field(..., min_length=1)
    content: str = ""
    date: datetime
    category_ids: list[int] = Field(default_factory=list, alias="categories")
    tag_ids: list[int] = Field(default_factory=list, alias="tags")
    featured_media_id: Optional[int] = Field(None, alias="featured_media")

    @field_validator("category_ids", "tag_ids", mode="before")
    @classmethod
    def _dedup_ids(cls, v: Optional[list[int]]):
        if not v:
            return []
        seen = set()
        deduped = []
        for item in v:
            if item not in seen:
                seen.add(item)
                deduped.append(item)
        return deduped

    def to_wp_payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "title": self.title,
            "content": self.content,
            "status": "draft",
            "date": self.date.isoformat(),
            "categories": self.category_ids,
            "tags": self.tag_ids,
        }
        if self.featured_media_id:
            body["featured_media"] = self.featured_media_id
        return body


class CreatedPost(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    status: str
    link: str = ""


class UploadedMedia(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    url: str = Field(..., alias="source_url")
    media_type: str = ""
    mime_type: str = ""
