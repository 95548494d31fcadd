"""Library operations tying extraction, storage and summaries together."""

from __future__ import annotations

import logging
from typing import Any

from speedreader.core.content_types import Article, ReadingMode
from speedreader.core.extractor import ArticleExtractor, normalize_url
from speedreader.core.llm_providers import LLMProvider
from speedreader.core.storage import DB
from speedreader.core.summarizer import SummarizationError, summarize

logger = logging.getLogger(__name__)


async def add_article_from_url(db: DB, url: str, extractor: ArticleExtractor) -> Article:
    """Extract a page and save it as a new article.

    Raises:
        ExtractionError: extraction failed, nothing is stored
    """
    url = normalize_url(url)
    extracted = await extractor.extract(url)
    article = Article(url=url, title=extracted.title, content=extracted.content)
    db.save_article(article)
    logger.info(f"Added article {article.id}: {article.title!r}")
    return article


async def summarize_article(db: DB, article_id: str, provider: LLMProvider) -> str:
    """Generate and store a summary for a saved article.

    Raises:
        KeyError: unknown article
        SummarizationError: summary could not be produced
    """
    article = db.get_article(article_id)
    if article is None:
        raise KeyError(article_id)

    summary = await summarize(article.content, provider)
    if not db.set_summary(article_id, summary):
        raise SummarizationError(f"Article {article_id} disappeared while summarizing")
    return summary


def library_listing(db: DB, search: str = "") -> list[dict[str, Any]]:
    """Articles (without content) with per-mode progress fractions.

    ``progress`` is the furthest of the RSVP and TTS positions.
    """
    rows = []
    for article in db.list_articles(search):
        fractions = {mode.value: 0.0 for mode in ReadingMode}
        for progress in db.list_progress(article.id):
            fractions[progress.mode.value] = progress.fraction

        item = article.to_dict(include_content=False)
        item["progress_by_mode"] = {k: round(v, 4) for k, v in fractions.items()}
        item["progress"] = round(max(fractions.values()), 4)
        rows.append(item)
    return rows
