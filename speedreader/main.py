from __future__ import annotations

import logging

from fastapi import FastAPI

from speedreader.core.content_types import AppearanceMode, ReadingMode
from speedreader.core.extractor import ArticleExtractor
from speedreader.core.fetcher import ExtractionError, HTMLFetcher
from speedreader.core.library import add_article_from_url, library_listing, summarize_article
from speedreader.core.llm_providers import LLMProvider, get_chat_provider
from speedreader.core.settings import Settings
from speedreader.core.storage import get_db, init_db
from speedreader.core.summarizer import SummarizationError
from speedreader.core.tokenizer import split_word, tokenize
from speedreader.core.tts_session import (
    sentence_index_for_word,
    split_sentences,
    word_index_for_sentence,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="speedreader")

_extractor: ArticleExtractor | None = None


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.on_event("shutdown")
async def _shutdown() -> None:
    global _extractor
    if _extractor is not None:
        await _extractor.close()
        _extractor = None


def get_extractor() -> ArticleExtractor:
    global _extractor
    if _extractor is None:
        s = Settings.from_env()
        _extractor = ArticleExtractor(
            HTMLFetcher(timeout=s.fetch_timeout, user_agent=s.fetch_user_agent)
        )
    return _extractor


def get_summary_provider() -> LLMProvider:
    s = Settings.from_env()
    return get_chat_provider(s.llm_provider, model=s.summary_model)


# ==================== Articles ====================


@app.post("/api/articles")
async def api_add_article(url: str):
    """Extract a web page and add it to the library."""
    db = get_db()
    try:
        article = await add_article_from_url(db, url, get_extractor())
    except ExtractionError as e:
        logger.warning(f"Extraction failed for {url}: {e}")
        return e.to_dict()

    return {"success": True, "article": article.to_dict(include_content=False)}


@app.get("/api/articles")
def api_list_articles(q: str = ""):
    """List saved articles, newest first.

    Args:
        q: Optional title/URL substring filter
    """
    db = get_db()
    return {"articles": library_listing(db, q)}


@app.get("/api/articles/{article_id}")
def api_get_article(article_id: str):
    db = get_db()
    article = db.get_article(article_id)
    if not article:
        return {"error": "Article not found"}
    return article.to_dict()


@app.delete("/api/articles/{article_id}")
def api_delete_article(article_id: str):
    """Delete an article and its reading progress."""
    db = get_db()
    if not db.delete_article(article_id):
        return {"error": "Article not found"}
    return {"success": True}


@app.get("/api/articles/{article_id}/tokens")
def api_article_tokens(article_id: str):
    """Words for the RSVP reader, with paragraph mapping and focus letters."""
    db = get_db()
    article = db.get_article(article_id)
    if not article:
        return {"error": "Article not found"}

    text = tokenize(article.content if article.content.strip() else article.title)
    focus = [split_word(w) for w in text.words]
    return {
        "article_id": article.id,
        "word_count": len(text),
        "words": text.words,
        "paragraph_indices": text.paragraph_indices,
        "paragraphs": text.paragraphs,
        "focus": [[w.left_part, w.focus_letter, w.right_part] for w in focus],
    }


@app.get("/api/articles/{article_id}/sentences")
def api_article_sentences(article_id: str):
    """Sentences for the TTS reader and the sentence to resume at."""
    db = get_db()
    article = db.get_article(article_id)
    if not article:
        return {"error": "Article not found"}

    sentences = split_sentences(article.content if article.content.strip() else article.title)
    progress = db.get_progress(article.id, ReadingMode.TTS)
    current = sentence_index_for_word(sentences, progress.current_word_index) if progress else 0
    return {
        "article_id": article.id,
        "sentences": sentences,
        "word_offsets": [word_index_for_sentence(sentences, i) for i in range(len(sentences))],
        "current_sentence_index": current,
    }


@app.get("/api/articles/{article_id}/progress")
def api_article_progress(article_id: str):
    db = get_db()
    if not db.get_article(article_id):
        return {"error": "Article not found"}

    progress = {mode.value: None for mode in ReadingMode}
    for p in db.list_progress(article_id):
        progress[p.mode.value] = p.to_dict()
    return {"article_id": article_id, "progress": progress}


@app.post("/api/articles/{article_id}/summary")
async def api_summarize_article(article_id: str):
    """Generate and store a short summary."""
    db = get_db()
    try:
        summary = await summarize_article(db, article_id, get_summary_provider())
    except KeyError:
        return {"error": "Article not found"}
    except (SummarizationError, ValueError) as e:
        logger.warning(f"Summary failed for {article_id}: {e}")
        return {"error": str(e)}

    return {"success": True, "summary": summary}


# ==================== Settings ====================


@app.get("/api/settings")
def api_get_settings():
    db = get_db()
    return db.get_app_settings().to_dict()


@app.post("/api/settings")
def api_update_settings(
    rsvp_speed_wpm: int | None = None,
    tts_speed_multiplier: float | None = None,
    focus_color: str | None = None,
    selected_voice_id: str | None = None,
    appearance_mode: str | None = None,
):
    """Update reading preferences. Only given fields change."""
    changes = {}
    if rsvp_speed_wpm is not None:
        if rsvp_speed_wpm <= 0:
            return {"error": "rsvp_speed_wpm must be positive"}
        changes["rsvp_speed_wpm"] = rsvp_speed_wpm
    if tts_speed_multiplier is not None:
        if tts_speed_multiplier <= 0:
            return {"error": "tts_speed_multiplier must be positive"}
        changes["tts_speed_multiplier"] = tts_speed_multiplier
    if focus_color is not None:
        if not focus_color.startswith("#") or len(focus_color) != 7:
            return {"error": "Invalid color format. Use #RRGGBB"}
        changes["focus_color"] = focus_color
    if selected_voice_id is not None:
        changes["selected_voice_id"] = selected_voice_id or None
    if appearance_mode is not None:
        try:
            changes["appearance_mode"] = AppearanceMode(appearance_mode)
        except ValueError:
            return {"error": f"Unknown appearance mode: {appearance_mode}"}

    db = get_db()
    settings = db.update_app_settings(**changes)
    return {"success": True, "settings": settings.to_dict()}
