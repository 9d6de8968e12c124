"""Text helpers used when building search values."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

WHITESPACE_RE = re.compile(r"\s+")


def strip_tags(text: str) -> str:
    """Remove HTML tags and unescape entities."""
    if not text:
        return ""
    return BeautifulSoup(text, "html.parser").get_text()


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run into a single space."""
    return WHITESPACE_RE.sub(" ", text)
