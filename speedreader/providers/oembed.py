"""oEmbed client for social posts.

Microblog pages are rendered client-side, so instead of scraping them we ask
the platform's oEmbed endpoint for the embeddable HTML and read the quoted
post text out of it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from speedreader.core.fetcher import NoContentFoundError, ParsingError
from speedreader.core.html_cleaning import clean_text, visible_text

if TYPE_CHECKING:
    from speedreader.core.fetcher import HTMLFetcher

logger = logging.getLogger(__name__)

TWITTER_OEMBED_ENDPOINT = "https://publish.twitter.com/oembed"

# Host (without www./mobile.) -> oEmbed endpoint
OEMBED_DOMAINS = {
    "twitter.com": TWITTER_OEMBED_ENDPOINT,
    "x.com": TWITTER_OEMBED_ENDPOINT,
}

_HOST_PREFIXES = ("www.", "mobile.")


@dataclass(frozen=True)
class SocialPost:
    author: str
    text: str


def _get_domain(url: str) -> str:
    """Extract domain from URL, without www./mobile. prefixes."""
    domain = (urlparse(url).hostname or "").lower()
    for prefix in _HOST_PREFIXES:
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
            break
    return domain


def oembed_endpoint_for(url: str) -> str | None:
    """The oEmbed endpoint serving this URL, or None for regular pages."""
    return OEMBED_DOMAINS.get(_get_domain(url))


def author_handle(data: dict[str, Any]) -> str:
    """'@handle' from author_url, else the display name."""
    author_url = data.get("author_url") or ""
    path = urlparse(author_url).path.strip("/")
    if path:
        return "@" + path.split("/")[-1]
    return (data.get("author_name") or "").strip()


def parse_embed_html(embed_html: str) -> str:
    """Quoted post text from an oEmbed HTML fragment."""
    soup = BeautifulSoup(embed_html, "html.parser")
    quote = soup.find("blockquote")
    if quote is None:
        return ""

    paragraphs = [clean_text(visible_text(p)) for p in quote.find_all("p")]
    text = "\n\n".join(p for p in paragraphs if p)
    if not text:
        text = clean_text(visible_text(quote))
    return text


async def fetch_social_post(fetcher: "HTMLFetcher", url: str) -> SocialPost:
    """Fetch a social post through its oEmbed representation.

    Raises:
        NetworkError: request failed or returned non-2xx
        ParsingError: response is not an oEmbed JSON object
        NoContentFoundError: embed has no text
    """
    endpoint = oembed_endpoint_for(url)
    if endpoint is None:
        raise ValueError(f"No oEmbed endpoint for {url}")

    data = await fetcher.fetch_json(endpoint, params={"url": url, "omit_script": "true"})
    if not isinstance(data, dict):
        raise ParsingError("Unexpected oEmbed response")

    text = parse_embed_html(data.get("html") or "")
    if not text:
        raise NoContentFoundError("Post has no extractable text.")

    author = author_handle(data) or "Untitled Post"
    logger.debug(f"oEmbed post by {author}: {len(text)} chars")
    return SocialPost(author=author, text=text)
