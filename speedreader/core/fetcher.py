"""HTTP fetching for article extraction.

Retrieves raw page bytes with a browser-like User-Agent, validates the
status code and decodes the body (UTF-8, then Latin-1).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import httpx

from speedreader.core.settings import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

# HTTP timeout
FETCH_TIMEOUT = 30.0

# Maximum content size to fetch (10MB)
MAX_CONTENT_SIZE = 10 * 1024 * 1024


class ExtractErrorType(str, Enum):
    """Classification of extraction failures."""

    INVALID_URL = "invalid_url"
    NETWORK = "network_error"
    PARSING = "parsing_error"
    NO_CONTENT = "no_content"


class ExtractionError(Exception):
    """Base exception for article extraction."""

    error_type: ExtractErrorType = ExtractErrorType.PARSING

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        return {"error": str(self), "error_type": self.error_type.value}


class InvalidURLError(ExtractionError):
    """The input could not be turned into an http(s) URL with a host."""

    error_type = ExtractErrorType.INVALID_URL

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url!r}. Please enter a valid web address.")
        self.url = url


class NetworkError(ExtractionError):
    """Transport failure or non-2xx response."""

    error_type = ExtractErrorType.NETWORK

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(f"Network error: {message}", cause)
        self.http_status = http_status


class ParsingError(ExtractionError):
    """The response could not be decoded or parsed."""

    error_type = ExtractErrorType.PARSING

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Failed to parse content: {message}", cause)


class NoContentFoundError(ExtractionError):
    """Every extraction strategy came up empty."""

    error_type = ExtractErrorType.NO_CONTENT

    def __init__(self, message: str = "Could not find article content on this page.") -> None:
        super().__init__(message)


def decode_body(body: bytes) -> str:
    """Decode page bytes as UTF-8, falling back to Latin-1."""
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Body is not valid UTF-8, falling back to Latin-1")

    try:
        return body.decode("latin-1")
    except UnicodeDecodeError as e:
        raise ParsingError("Could not decode page content", e) from e


class HTMLFetcher:
    """Async HTTP client wrapper for pages and JSON endpoints."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = FETCH_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._user_agent = user_agent

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                limits=httpx.Limits(max_connections=10),
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str, params: dict[str, str] | None = None) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.get(url, params=params, headers=self.headers)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out after {self._timeout}s", e) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{type(e).__name__}: {e}", e) from e

        if not 200 <= response.status_code <= 299:
            raise NetworkError(
                f"HTTP {response.status_code}",
                http_status=response.status_code,
            )
        return response

    async def fetch_html(self, url: str) -> str:
        """GET a page and return its decoded HTML."""
        response = await self._get(url)

        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_CONTENT_SIZE:
            raise NetworkError(f"Content too large: {content_length} bytes")

        logger.debug(f"Fetched {url}: {response.status_code}, {len(response.content)} bytes")
        return decode_body(response.content)

    async def fetch_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        """GET a JSON endpoint."""
        response = await self._get(url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ParsingError("Response is not valid JSON", e) from e
