"""Short article summaries via a chat model."""

from __future__ import annotations

import logging

from speedreader.core.llm_providers import LLMError, LLMProvider

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTIONS = (
    "You are a concise article summarizer. Given an article's text, produce a clear "
    "summary of 2-3 short paragraphs that captures the key points. Write in plain prose, "
    "no bullet points or headings. Keep it under 200 words."
)

# Longer articles are cut to keep the request inside the model context
MAX_SUMMARY_INPUT_CHARS = 12_000

SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 400


class SummarizationError(Exception):
    """Summary could not be produced."""


async def summarize(content: str, provider: LLMProvider) -> str:
    """Summarize article text.

    Raises:
        SummarizationError: empty input, provider failure or empty answer
    """
    if not content or not content.strip():
        raise SummarizationError("Nothing to summarize.")

    truncated = content[:MAX_SUMMARY_INPUT_CHARS]
    messages = [
        {"role": "system", "content": SUMMARY_INSTRUCTIONS},
        {"role": "user", "content": truncated},
    ]

    try:
        response = await provider.chat(
            messages,
            temperature=SUMMARY_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS,
        )
    except LLMError as e:
        raise SummarizationError(f"{e.provider}: {e}") from e

    summary = response.content.strip()
    if not summary:
        raise SummarizationError("Model returned an empty summary.")

    logger.info(
        f"Summarized {len(truncated)} chars with {response.model} "
        f"({response.tokens_input}+{response.tokens_output} tokens, {response.latency_ms}ms)"
    )
    return summary
