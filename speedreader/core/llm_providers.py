"""Chat completion providers used for article summaries."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Retry settings for rate limits
MAX_RETRIES = 5
INITIAL_DELAY = 2.0  # seconds
MAX_DELAY = 60.0  # seconds

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

DEFAULT_SUMMARY_MODEL = "gpt-4.1-mini"


@dataclass
class ChatResponse:
    """Response from a chat completion."""

    content: str
    model: str
    tokens_input: int
    tokens_output: int
    finish_reason: str
    latency_ms: int


class LLMError(Exception):
    """Error during LLM API call."""

    def __init__(self, message: str, provider: str, retriable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retriable = retriable


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name."""
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        ...

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> ChatResponse:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content' keys.
            temperature: Sampling temperature (0-2).
            max_tokens: Max tokens to generate (None = model default).

        Raises:
            LLMError: If the API call fails.
        """
        ...


class OpenAIChatProvider(LLMProvider):
    """OpenAI chat completions over httpx."""

    def __init__(
        self,
        model: str = DEFAULT_SUMMARY_MODEL,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        initial_delay: float = INITIAL_DELAY,
    ):
        self._model = model
        self._api_key = api_key or os.getenv("OPENAI_API_KEY", "").strip()
        self._client = client
        self._initial_delay = initial_delay

    @property
    def name(self) -> str:
        return "OpenAI"

    @property
    def model_id(self) -> str:
        return self._model

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> ChatResponse:
        if not self._api_key:
            raise LLMError(
                "OPENAI_API_KEY is not set.",
                provider=self.name,
                retriable=False,
            )

        request_body: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            request_body["max_tokens"] = max_tokens

        if self._client is not None:
            return await self._chat_with_retries(self._client, request_body)
        async with httpx.AsyncClient(timeout=120.0) as client:
            return await self._chat_with_retries(client, request_body)

    async def _chat_with_retries(
        self,
        client: httpx.AsyncClient,
        request_body: dict[str, Any],
    ) -> ChatResponse:
        delay = self._initial_delay
        last_error: Exception | None = None

        for attempt in range(MAX_RETRIES):
            start_time = time.monotonic()
            try:
                response = await client.post(
                    OPENAI_CHAT_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json=request_body,
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status == 429 and "quota" not in e.response.text.lower():
                    logger.warning(
                        f"Rate limit hit, attempt {attempt + 1}/{MAX_RETRIES}. "
                        f"Waiting {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, MAX_DELAY)
                    continue
                raise self._status_error(status, e.response.text) from e
            except httpx.HTTPError as e:
                raise LLMError(
                    f"OpenAI request failed: {type(e).__name__}: {e}",
                    provider=self.name,
                    retriable=True,
                ) from e

            latency_ms = int((time.monotonic() - start_time) * 1000)
            try:
                choice = data["choices"][0]
                usage = data.get("usage") or {}
                return ChatResponse(
                    content=choice["message"]["content"] or "",
                    model=data.get("model", self._model),
                    tokens_input=usage.get("prompt_tokens", 0),
                    tokens_output=usage.get("completion_tokens", 0),
                    finish_reason=choice.get("finish_reason") or "",
                    latency_ms=latency_ms,
                )
            except (KeyError, IndexError, TypeError) as e:
                raise LLMError(
                    f"Unexpected OpenAI response: {e}",
                    provider=self.name,
                    retriable=False,
                ) from e

        raise LLMError(
            f"Still rate limited after {MAX_RETRIES} attempts.",
            provider=self.name,
            retriable=True,
        ) from last_error

    def _status_error(self, status: int, body: str) -> LLMError:
        if status == 429:
            message = "OpenAI quota exhausted."
        elif status == 401:
            message = "OpenAI API key rejected."
        elif status == 404:
            message = f"Model '{self._model}' is not available."
        else:
            message = f"OpenAI API error: {status} - {body}"
        return LLMError(message, provider=self.name, retriable=False)


def get_chat_provider(
    provider_name: str = "openai",
    model: str | None = None,
) -> LLMProvider:
    """Factory function to get an LLM provider.

    Raises:
        ValueError: If the provider is unknown.
    """
    provider_name = provider_name.lower()

    if provider_name == "openai":
        model = model or os.getenv("SUMMARY_MODEL", DEFAULT_SUMMARY_MODEL)
        return OpenAIChatProvider(model=model)

    raise ValueError(f"Unknown provider: {provider_name}. Available: openai")
