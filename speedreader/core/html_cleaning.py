"""Boilerplate removal and text normalization for parsed pages."""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, Tag

from speedreader.core.tokenizer import count_words

logger = logging.getLogger(__name__)

# Elements that never hold article text
UNWANTED_TAGS = ("script", "style", "nav", "footer", "aside", "noscript", "iframe", "form")

# Substrings of class/id values that mark page chrome.
# Kept conservative so legitimate content containers survive.
UNWANTED_PATTERNS = ("sidebar", "comment", "newsletter", "popup", "modal", "promo", "sponsor")

HIDDEN_SELECTORS = ("[hidden]", "[aria-hidden='true']")
DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)

TEXT_BLOCK_SELECTOR = "p, h1, h2, h3, h4, h5, h6"

# Substantiality gate
MIN_CONTENT_CHARS = 100
MIN_CONTENT_WORDS = 20

_SPACES_RE = re.compile(r"[ \t]+")
_NEWLINES_RE = re.compile(r"\n{3,}")


def clean_text(text: str) -> str:
    """Normalize whitespace.

    - Collapse runs of spaces/tabs to one space
    - Collapse 3+ newlines to 2
    - Trim every line and the whole text
    """
    cleaned = _SPACES_RE.sub(" ", text)
    cleaned = _NEWLINES_RE.sub("\n\n", cleaned)
    cleaned = "\n".join(line.strip() for line in cleaned.split("\n"))
    return cleaned.strip()


def is_substantial(text: str | None) -> bool:
    """Whether text is long enough to be article content."""
    if not text:
        return False
    return len(text) >= MIN_CONTENT_CHARS and count_words(text) >= MIN_CONTENT_WORDS


def visible_text(element: Tag, separator: str = " ") -> str:
    """Element text with whitespace runs collapsed to single spaces."""
    return " ".join(element.get_text(separator).split())


def _remove(elements: list[Tag]) -> int:
    removed = 0
    for el in elements:
        # Descendant of something already removed
        if el.decomposed:
            continue
        el.decompose()
        removed += 1
    return removed


def strip_boilerplate(soup: BeautifulSoup) -> int:
    """Remove navigation, scripts, hidden and promotional elements in place.

    Returns the number of removed elements.
    """
    removed = _remove(soup.find_all(list(UNWANTED_TAGS)))

    for pattern in UNWANTED_PATTERNS:
        removed += _remove(soup.select(f'[class*="{pattern}"]'))
        removed += _remove(soup.select(f'[id*="{pattern}"]'))

    for selector in HIDDEN_SELECTORS:
        removed += _remove(soup.select(selector))
    removed += _remove(soup.find_all(style=DISPLAY_NONE_RE))

    logger.debug(f"Stripped {removed} boilerplate elements")
    return removed


def extract_text_content(element: Tag) -> str:
    """Paragraph and heading text of an element, joined by blank lines.

    Falls back to the element's full text when it has no p/h1-h6 descendants.
    """
    blocks = element.select(TEXT_BLOCK_SELECTOR)
    if not blocks:
        return clean_text(visible_text(element))

    parts = []
    for block in blocks:
        cleaned = clean_text(visible_text(block, separator=""))
        if cleaned:
            parts.append(cleaned)
    return "\n\n".join(parts)
