"""
Bookmark ("link preview") figures of Tistory rendered as static cards.

Tistory stores link previews as ``<figure data-ke-type="opengraph">`` blocks
whose markup depends on the editor's scripts.  They are rewritten into a
self-contained ``div.bookmark-card`` using the title, description and image
already present in the figure.  Images inside these cards point at preview
thumbnails and are left alone by the media pipeline.
"""

from __future__ import annotations

import logging
from html import escape

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

CARD_CLASS = "bookmark-card"


def _render_card(url: str, title: str, description: str, image: str) -> str:
    parts = [f'<div class="{CARD_CLASS}">', f'<a href="{escape(url)}" target="_blank" rel="noopener">']
    if image:
        parts.append(f'<img class="{CARD_CLASS}__image" src="{escape(image)}" alt="" />')
    parts.append(f'<strong class="{CARD_CLASS}__title">{escape(title or url)}</strong>')
    if description:
        parts.append(f'<span class="{CARD_CLASS}__description">{escape(description)}</span>')
    parts.append("</a></div>")
    return "".join(parts)


def replace_embeds(html: str, bookmark_selector: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    figures = soup.select(bookmark_selector)
    if not figures:
        return html

    replaced = 0
    for figure in figures:
        url = figure.get("data-og-url") or ""
        if not url:
            link = figure.find("a", href=True)
            url = link["href"] if link else ""
        if not url:
            logger.debug("Bookmark figure without URL left untouched")
            continue

        title = figure.get("data-og-title") or ""
        if not title:
            heading = figure.find(class_="og-title")
            title = heading.get_text(" ", strip=True) if heading else ""
        description = figure.get("data-og-description") or ""
        if not description:
            desc = figure.find(class_="og-desc")
            description = desc.get_text(" ", strip=True) if desc else ""
        image = figure.get("data-og-image") or ""

        card = BeautifulSoup(_render_card(url, title, description, image), "html.parser")
        figure.replace_with(card)
        replaced += 1

    logger.debug("Replaced %d bookmark figures", replaced)
    return str(soup)
