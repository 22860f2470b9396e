from __future__ import annotations

from typing import Iterable, List, Optional

from blog_migrator.config import CategoryHierarchyOrder
from blog_migrator.models.post import Category
from blog_migrator.utils.tags import normalize_label


def parse_category_labels(labels: Iterable[str]) -> List[str]:
    """
    Normalize raw category labels scraped from a post.

    - Fixes HTML entities (e.g., '&amp;' -> '&') and whitespace
    - Drops empty labels
    - Deduplicates exact repeats, order preserved
    """
    seen = set()
    result: List[str] = []
    for raw in labels:
        name = normalize_label(raw)
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def build_category_hierarchy(
    labels: Iterable[str],
    order: CategoryHierarchyOrder = CategoryHierarchyOrder.FIRST_IS_PARENT,
) -> List[Category]:
    """
    Turn the category labels of a post into a parent/child chain.

    Tistory shows the category path of a post (``Dev`` › ``Python``).  With
    ``first-is-parent`` the first label is the root; with ``last-is-parent``
    the order is reversed.  A single label is a root category.  Only the
    leaf is returned; its ancestors hang off :attr:`Category.parent`.
    """
    names = parse_category_labels(labels)
    if not names:
        return []
    if order == CategoryHierarchyOrder.LAST_IS_PARENT:
        names = list(reversed(names))

    leaf: Optional[Category] = None
    for name in names:
        leaf = Category(name=name, parent=leaf)
    return [leaf]
