"""Article extraction from arbitrary web pages.

Pipeline:
1. Normalize the URL (default to https://)
2. Social posts go through oEmbed, everything else is fetched as HTML
3. Title from <title> (site suffix removed), then <h1>
4. Strip boilerplate, then pick the main content by text density
5. Fall back to known content selectors, then to meta descriptions
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from speedreader.core.fetcher import (
    HTMLFetcher,
    InvalidURLError,
    NoContentFoundError,
    ParsingError,
)
from speedreader.core.html_cleaning import (
    TEXT_BLOCK_SELECTOR,
    clean_text,
    extract_text_content,
    is_substantial,
    strip_boilerplate,
    visible_text,
)
from speedreader.providers.oembed import fetch_social_post, oembed_endpoint_for

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Article"

# "Article Title | Site Name"
TITLE_SEPARATORS_RE = re.compile(r"[|—–-]")

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")

# Containers considered by density scoring
CANDIDATE_SELECTOR = "article, main, section, div"

# Scoring weights (empirical, keep as is)
PARAGRAPH_WEIGHT = 10
LINK_DENSITY_PENALTY = 50

# Tried in order when density scoring finds nothing substantial
CONTENT_SELECTORS = (
    "article",
    "main",
    "[role='main']",
    ".gh-content",
    ".post-content",
    ".article-content",
    ".entry-content",
    ".content-body",
    ".article-body",
    ".prose",
    ".markdown-body",
    "[itemprop='articleBody']",
)

META_TITLE_KEYS = ("og:title", "twitter:title")
META_DESCRIPTION_KEYS = ("og:description", "twitter:description", "description")


@dataclass(frozen=True)
class ExtractedArticle:
    title: str
    content: str


def normalize_url(raw: str) -> str:
    """Add https:// when missing and validate.

    Raises:
        InvalidURLError: no http(s) scheme or no host after normalization
    """
    url = (raw or "").strip()
    if not url:
        raise InvalidURLError(raw)
    if not _SCHEME_RE.match(url):
        url = f"https://{url}"

    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError as e:
        raise InvalidURLError(raw) from e

    if parsed.scheme.lower() not in ("http", "https") or not host:
        raise InvalidURLError(raw)
    return url


def extract_title(soup: BeautifulSoup) -> str:
    """<title> up to the first separator, else first <h1>, else a default."""
    title_el = soup.find("title")
    if title_el is not None:
        title_text = visible_text(title_el)
        cleaned = TITLE_SEPARATORS_RE.split(title_text, maxsplit=1)[0].strip()
        if cleaned:
            return cleaned

    h1 = soup.find("h1")
    if h1 is not None:
        h1_text = visible_text(h1)
        if h1_text:
            return h1_text

    return DEFAULT_TITLE


def score_element(element: Tag) -> float:
    """Text-density score: long, paragraph-rich, link-sparse regions win.

    score = max(0, ln(text_length) + 10 * paragraphs - 50 * link_density)
    """
    text_length = len(visible_text(element))
    paragraph_count = len(element.select(TEXT_BLOCK_SELECTOR))
    link_length = sum(len(visible_text(a)) for a in element.find_all("a"))

    link_density = link_length / text_length if text_length > 0 else 1.0
    length_score = math.log(text_length) if text_length > 0 else 0.0

    score = (
        length_score
        + PARAGRAPH_WEIGHT * paragraph_count
        - LINK_DENSITY_PENALTY * link_density
    )
    return max(0.0, score)


def find_content_by_density(soup: BeautifulSoup) -> str | None:
    """Extracted text of the best-scoring substantial container.

    Only candidates scoring above zero are accepted, so link lists never win.
    """
    best_content: str | None = None
    best_score = 0.0

    for element in soup.select(CANDIDATE_SELECTOR):
        try:
            score = score_element(element)
            if score <= best_score:
                continue
            content = extract_text_content(element)
        except Exception as e:
            # One malformed candidate must not abort the scan
            logger.debug(f"Skipping <{element.name}> candidate: {type(e).__name__}: {e}")
            continue

        if is_substantial(content):
            best_score = score
            best_content = content

    if best_content is not None:
        logger.debug(f"Density scoring picked content with score {best_score:.2f}")
    return best_content


def find_content_by_selectors(soup: BeautifulSoup) -> str | None:
    """First substantial match from the known content selectors."""
    for selector in CONTENT_SELECTORS:
        try:
            element = soup.select_one(selector)
            if element is None:
                continue
            content = extract_text_content(element)
        except Exception as e:
            logger.debug(f"Selector {selector!r} failed: {type(e).__name__}: {e}")
            continue
        if is_substantial(content):
            logger.debug(f"Fallback selector {selector!r} matched")
            return content
    return None


def _meta_content(soup: BeautifulSoup, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        for attr in ("property", "name"):
            tag = soup.find("meta", attrs={attr: key})
            if tag is None:
                continue
            value = (tag.get("content") or "").strip()
            if value:
                return value
    return None


def find_content_in_meta(soup: BeautifulSoup) -> str | None:
    """Title + description from meta tags, for JS-rendered pages."""
    parts = [
        _meta_content(soup, META_TITLE_KEYS),
        _meta_content(soup, META_DESCRIPTION_KEYS),
    ]
    content = clean_text("\n\n".join(p for p in parts if p))
    if is_substantial(content):
        logger.debug("Using meta-tag fallback content")
        return content
    return None


def extract_from_html(html: str) -> ExtractedArticle:
    """Run title extraction and the content strategy chain on a page.

    Raises:
        ParsingError: HTML could not be parsed
        NoContentFoundError: no strategy produced substantial text
    """
    try:
        soup = BeautifulSoup(html, "html.parser")
    except Exception as e:
        raise ParsingError(f"{type(e).__name__}: {e}", e) from e

    title = extract_title(soup)
    strip_boilerplate(soup)

    content = (
        find_content_by_density(soup)
        or find_content_by_selectors(soup)
        or find_content_in_meta(soup)
    )
    if not content:
        raise NoContentFoundError()

    return ExtractedArticle(title=title, content=content)


class ArticleExtractor:
    """Turns a URL into a title and plain article text."""

    def __init__(self, fetcher: HTMLFetcher | None = None) -> None:
        self._fetcher = fetcher or HTMLFetcher()

    async def close(self) -> None:
        await self._fetcher.close()

    async def extract(self, url: str) -> ExtractedArticle:
        """Extract an article from a URL.

        Raises:
            InvalidURLError, NetworkError, ParsingError, NoContentFoundError
        """
        url = normalize_url(url)

        if oembed_endpoint_for(url) is not None:
            post = await fetch_social_post(self._fetcher, url)
            return ExtractedArticle(title=post.author, content=post.text)

        html = await self._fetcher.fetch_html(url)

        # Parsing and scoring are CPU-bound
        article = await asyncio.get_running_loop().run_in_executor(
            None, extract_from_html, html
        )
        logger.info(f"Extracted {len(article.content)} chars from {url}")
        return article
