from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

_DROP_TAGS = ["script", "style", "noscript", "link", "meta"]


def clean_html(html: str, content_selector: str) -> str:
    """
    Keep only the post body found under ``content_selector`` and strip
    markup WordPress should never receive (scripts, styles, comments).

    When the selector matches nothing the whole document body is used and a
    warning is logged, so an unexpected skin still migrates its text.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    root = soup.select_one(content_selector)
    if root is None:
        logger.warning("Content selector %r matched nothing; using the whole page", content_selector)
        root = soup.body or soup

    for tag in root.find_all(_DROP_TAGS):
        tag.decompose()
    for comment in root.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    return "".join(str(child) for child in root.contents).strip()
