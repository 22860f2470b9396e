from __future__ import annotations

from html import unescape
import re
from typing import Iterable, List

from blog_migrator.models.post import Tag


def normalize_label(value: str) -> str:
    """Unescape HTML entities and collapse inner whitespace.

    Preserves original casing but trims leading/trailing spaces
    and converts sequences of whitespace to a single space.
    Tistory renders tags as ``#tag`` links; the leading ``#`` is dropped.
    """
    if not value:
        return ""
    text = unescape(value).strip()
    text = re.sub(r"\s+", " ", text)
    return text.lstrip("#").strip()


def parse_tag_labels(labels: Iterable[str]) -> List[Tag]:
    """
    Normalize the tag labels scraped from a post.

    - Unescapes HTML entities (e.g., '&amp;' -> '&')
    - Trims spaces, collapses inner whitespace, drops a leading '#'
    - Deduplicates case-insensitively while preserving first-seen casing

    Returns a list of :class:`Tag` suitable for the WordPress Tags API.
    """
    seen_lower = set()
    result: List[Tag] = []
    for raw in labels:
        label = normalize_label(raw)
        key = label.lower()
        if label and key not in seen_lower:
            seen_lower.add(key)
            result.append(Tag(name=label))
    return result
