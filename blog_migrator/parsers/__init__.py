"""
HTML transforms applied to a post before it is sent to WordPress.

Currently this subpackage exposes ``clean_html`` from
:mod:`blog_migrator.parsers.html_cleaner` and ``replace_embeds`` from
:mod:`blog_migrator.parsers.embeds`.
"""

from .embeds import replace_embeds
from .html_cleaner import clean_html

__all__ = ["clean_html", "replace_embeds"]
