"""Tests for fetcher.py"""

import httpx
import pytest

from speedreader.core.fetcher import (
    ExtractErrorType,
    HTMLFetcher,
    InvalidURLError,
    NetworkError,
    NoContentFoundError,
    ParsingError,
    decode_body,
)
from speedreader.core.settings import DEFAULT_USER_AGENT


def _fetcher(handler, **kwargs) -> HTMLFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HTMLFetcher(client=client, **kwargs)


class TestErrors:
    def test_error_types(self):
        assert InvalidURLError("x").error_type == ExtractErrorType.INVALID_URL
        assert NetworkError("down").error_type == ExtractErrorType.NETWORK
        assert ParsingError("bad").error_type == ExtractErrorType.PARSING
        assert NoContentFoundError().error_type == ExtractErrorType.NO_CONTENT

    def test_to_dict(self):
        data = NetworkError("HTTP 500", http_status=500).to_dict()
        assert data == {"error": "Network error: HTTP 500", "error_type": "network_error"}

    def test_cause_is_kept(self):
        cause = ValueError("boom")
        err = ParsingError("could not parse", cause)
        assert err.cause is cause


class TestDecodeBody:
    def test_utf8(self):
        assert decode_body("Grüße".encode("utf-8")) == "Grüße"

    def test_latin1_fallback(self):
        assert decode_body(b"caf\xe9") == "café"


class TestHTMLFetcher:
    @pytest.mark.asyncio
    async def test_fetch_html_sends_browser_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, content=b"<html>ok</html>")

        fetcher = _fetcher(handler)
        html = await fetcher.fetch_html("https://example.com/")
        assert html == "<html>ok</html>"
        assert seen["ua"] == DEFAULT_USER_AGENT

    @pytest.mark.asyncio
    async def test_custom_user_agent(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, content=b"")

        await _fetcher(handler, user_agent="TestAgent/1.0").fetch_html("https://example.com/")
        assert seen["ua"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [301, 403, 404, 500, 503])
    async def test_non_2xx_is_network_error(self, status):
        fetcher = _fetcher(lambda request: httpx.Response(status))
        with pytest.raises(NetworkError) as exc:
            await fetcher.fetch_html("https://example.com/")
        assert exc.value.http_status == status
        assert f"HTTP {status}" in str(exc.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkError) as exc:
            await _fetcher(handler, timeout=5).fetch_html("https://example.com/")
        assert "timed out" in str(exc.value)
        assert isinstance(exc.value.cause, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError) as exc:
            await _fetcher(handler).fetch_html("https://example.com/")
        assert exc.value.http_status is None

    @pytest.mark.asyncio
    async def test_fetch_json(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, json={"ok": True}))
        assert await fetcher.fetch_json("https://example.com/api") == {"ok": True}

    @pytest.mark.asyncio
    async def test_fetch_json_invalid(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, content=b"not json"))
        with pytest.raises(ParsingError):
            await fetcher.fetch_json("https://example.com/api")

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        fetcher = HTMLFetcher(client=client)
        await fetcher.close()
        assert not client.is_closed
        await client.aclose()
