"""Tests for extractor.py"""

import httpx
import pytest
from bs4 import BeautifulSoup

from speedreader.core import extractor as extractor_module
from speedreader.core.extractor import (
    DEFAULT_TITLE,
    ArticleExtractor,
    extract_from_html,
    extract_title,
    find_content_by_density,
    normalize_url,
    score_element,
)
from speedreader.core.fetcher import (
    HTMLFetcher,
    InvalidURLError,
    NetworkError,
    NoContentFoundError,
)

# 20 words, 99 characters
PARAGRAPH = " ".join(["word"] * 20)

ARTICLE_HTML = "<article>" + "".join(f"<p>{PARAGRAPH}</p>" for _ in range(5)) + "</article>"

NAV_HTML = (
    '<div class="links">'
    + "".join(f'<a href="/page/{i}">Menu entry number {i:03d}</a> ' for i in range(25))
    + "</div>"
)


def _page(body: str, head: str = "") -> str:
    return f"<html><head>{head}</head><body>{body}</body></html>"


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _fetcher(handler) -> HTMLFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HTMLFetcher(client=client)


class TestNormalizeUrl:
    def test_adds_https(self):
        assert normalize_url("example.com/post") == "https://example.com/post"

    def test_keeps_http(self):
        assert normalize_url("  http://example.com/a  ") == "http://example.com/a"

    @pytest.mark.parametrize("raw", ["", "   ", "ftp://example.com/file", "https://", "file:///etc/hosts"])
    def test_rejects_invalid(self, raw):
        with pytest.raises(InvalidURLError):
            normalize_url(raw)


class TestExtractTitle:
    def test_strips_site_suffix(self):
        soup = _soup(_page("", head="<title>My Great Post | Example Blog</title>"))
        assert extract_title(soup) == "My Great Post"

    def test_dash_separator(self):
        soup = _soup(_page("", head="<title>Release notes — Product</title>"))
        assert extract_title(soup) == "Release notes"

    def test_falls_back_to_h1(self):
        soup = _soup(_page("<h1>Heading Title</h1>", head="<title>   </title>"))
        assert extract_title(soup) == "Heading Title"

    def test_default_title(self):
        soup = _soup(_page("<p>No titles here</p>"))
        assert extract_title(soup) == DEFAULT_TITLE


class TestDensityScoring:
    def test_article_outscores_link_list(self):
        soup = _soup(_page(ARTICLE_HTML + NAV_HTML))
        article_score = score_element(soup.find("article"))
        nav_score = score_element(soup.find("div", class_="links"))
        assert article_score > nav_score
        assert nav_score == 0.0

    def test_selects_article_not_navigation(self):
        for body in (ARTICLE_HTML + NAV_HTML, NAV_HTML + ARTICLE_HTML):
            content = find_content_by_density(_soup(_page(body)))
            assert content is not None
            assert content.startswith("word word")
            assert "Menu entry" not in content
            assert content.count("\n\n") == 4

    def test_link_list_alone_is_rejected(self):
        assert find_content_by_density(_soup(_page(NAV_HTML))) is None

    def test_link_list_page_has_no_content(self):
        menu = (
            "<div class='menu'>"
            + "".join(f"<a href='/p/{i}'>Navigation link number {i} here</a>" for i in range(20))
            + "</div>"
        )
        with pytest.raises(NoContentFoundError):
            extract_from_html(_page(menu))

    def test_wrapper_does_not_beat_article(self):
        html = _page(f"<div id='wrapper'>{ARTICLE_HTML}{NAV_HTML}</div>")
        content = find_content_by_density(_soup(html))
        assert "Menu entry" not in content

    def test_malformed_candidate_is_skipped(self, monkeypatch):
        real_score = extractor_module.score_element

        def flaky_score(element):
            if element.get("id") == "broken":
                raise RuntimeError("bad fragment")
            return real_score(element)

        monkeypatch.setattr(extractor_module, "score_element", flaky_score)
        html = _page(f"<div id='broken'><p>{PARAGRAPH}</p></div>{ARTICLE_HTML}")
        content = find_content_by_density(_soup(html))
        assert content is not None
        assert content.count("\n\n") == 4


class TestExtractFromHtml:
    def test_full_page(self):
        html = _page(
            "<nav>Home About Contact</nav>" + ARTICLE_HTML + "<footer>Copyright</footer>",
            head="<title>Speed Reading Basics | Blog</title>",
        )
        article = extract_from_html(html)
        assert article.title == "Speed Reading Basics"
        assert article.content.startswith(PARAGRAPH)
        assert "Copyright" not in article.content

    def test_untitled_page(self):
        article = extract_from_html(_page(ARTICLE_HTML))
        assert article.title == DEFAULT_TITLE

    def test_short_content_fails(self):
        html = _page("<article><p>Too short to be an article.</p></article><div>Tiny</div>")
        with pytest.raises(NoContentFoundError):
            extract_from_html(html)

    def test_selector_fallback(self):
        # <span> is never a density candidate
        body = f'<span class="entry-content">{PARAGRAPH} {PARAGRAPH}</span>'
        article = extract_from_html(_page(body))
        assert article.content == f"{PARAGRAPH} {PARAGRAPH}"

    def test_meta_fallback(self):
        description = " ".join(["described"] * 25)
        head = (
            "<title>App Shell</title>"
            '<meta property="og:title" content="Client Rendered Story">'
            f'<meta name="description" content="{description}">'
        )
        article = extract_from_html(_page('<div id="root"></div>', head=head))
        assert article.title == "App Shell"
        assert article.content == f"Client Rendered Story\n\n{description}"

    def test_meta_fallback_prefers_og_description(self):
        og = " ".join(["preferred"] * 25)
        head = (
            f'<meta property="og:description" content="{og}">'
            '<meta name="description" content="plain description">'
        )
        article = extract_from_html(_page("", head=head))
        assert article.content == og

    def test_meta_fallback_too_short(self):
        head = '<meta property="og:description" content="Short teaser.">'
        with pytest.raises(NoContentFoundError):
            extract_from_html(_page("", head=head))


class TestArticleExtractor:
    @pytest.mark.asyncio
    async def test_extracts_page(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            html = _page(ARTICLE_HTML, head="<title>Fetched Post - Site</title>")
            return httpx.Response(200, content=html.encode("utf-8"))

        extractor = ArticleExtractor(_fetcher(handler))
        article = await extractor.extract("example.com/post")

        assert seen["url"] == "https://example.com/post"
        assert article.title == "Fetched Post"
        assert article.content.startswith(PARAGRAPH)

    @pytest.mark.asyncio
    async def test_http_error(self):
        extractor = ArticleExtractor(_fetcher(lambda request: httpx.Response(404)))
        with pytest.raises(NetworkError) as exc:
            await extractor.extract("https://example.com/missing")
        assert exc.value.http_status == 404

    @pytest.mark.asyncio
    async def test_invalid_url_makes_no_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        extractor = ArticleExtractor(_fetcher(handler))
        with pytest.raises(InvalidURLError):
            await extractor.extract("ftp://example.com")
        assert calls == []

    @pytest.mark.asyncio
    async def test_social_post_uses_oembed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.host == "publish.twitter.com"
            assert request.url.params["url"] == "https://x.com/reader/status/1"
            return httpx.Response(
                200,
                json={
                    "author_name": "Reader",
                    "author_url": "https://twitter.com/reader",
                    "html": '<blockquote><p lang="en">Short post text</p>&mdash; Reader</blockquote>',
                },
            )

        extractor = ArticleExtractor(_fetcher(handler))
        article = await extractor.extract("x.com/reader/status/1")
        assert article.title == "@reader"
        assert article.content == "Short post text"
