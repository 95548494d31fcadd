from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any

from speedreader.core.content_types import (
    AppearanceMode,
    AppSettings,
    Article,
    ReadingMode,
    ReadingProgress,
)
from speedreader.core.settings import Settings

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS articles (
  id TEXT PRIMARY KEY,
  url TEXT NOT NULL,
  title TEXT NOT NULL,
  content TEXT NOT NULL,
  summary TEXT,
  date_added TEXT NOT NULL,
  last_read TEXT
);

CREATE INDEX IF NOT EXISTS idx_articles_date_added ON articles(date_added);

-- One row per (article, mode); word offsets for both readers
CREATE TABLE IF NOT EXISTS reading_progress (
  article_id TEXT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
  mode TEXT NOT NULL,  -- rsvp, tts
  current_word_index INTEGER NOT NULL DEFAULT 0,
  total_words INTEGER NOT NULL DEFAULT 0,
  updated_at TEXT DEFAULT (datetime('now')),
  PRIMARY KEY (article_id, mode)
);

-- Reading preferences (key-value)
CREATE TABLE IF NOT EXISTS app_settings (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL,
  updated_at TEXT DEFAULT (datetime('now'))
);
"""

ARTICLE_COLUMNS = "id, url, title, content, summary, date_added, last_read"

# app_settings keys are the AppSettings field names
SETTINGS_FIELDS = tuple(f.name for f in fields(AppSettings))


def _article_from_row(row: Any) -> Article:
    return Article(
        id=row[0],
        url=row[1],
        title=row[2],
        content=row[3],
        summary=row[4],
        date_added=datetime.fromisoformat(row[5]),
        last_read=datetime.fromisoformat(row[6]) if row[6] else None,
    )


def _serialize_setting(value: Any) -> str:
    if isinstance(value, AppearanceMode):
        return value.value
    return str(value)


@dataclass
class DB:
    conn: sqlite3.Connection

    def init(self) -> None:
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()

    # ==================== Articles ====================

    def save_article(self, article: Article) -> str:
        """Insert or replace an article. Returns its id."""
        self.conn.execute(
            f"""
            INSERT INTO articles ({ARTICLE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                url = excluded.url,
                title = excluded.title,
                summary = excluded.summary,
                last_read = excluded.last_read
            """,
            (
                article.id,
                article.url,
                article.title,
                article.content,
                article.summary,
                article.date_added.isoformat(),
                article.last_read.isoformat() if article.last_read else None,
            ),
        )
        self.conn.commit()
        return article.id

    def get_article(self, article_id: str) -> Article | None:
        cur = self.conn.execute(
            f"SELECT {ARTICLE_COLUMNS} FROM articles WHERE id = ?",
            (article_id,),
        )
        row = cur.fetchone()
        return _article_from_row(row) if row else None

    def list_articles(self, search: str = "") -> list[Article]:
        """List articles newest first, optionally filtered by title/URL substring."""
        search = (search or "").strip().lower()
        if not search:
            cur = self.conn.execute(
                f"SELECT {ARTICLE_COLUMNS} FROM articles ORDER BY date_added DESC"
            )
        else:
            pattern = f"%{search}%"
            cur = self.conn.execute(
                f"""
                SELECT {ARTICLE_COLUMNS} FROM articles
                WHERE lower(title) LIKE ? OR lower(url) LIKE ?
                ORDER BY date_added DESC
                """,
                (pattern, pattern),
            )
        return [_article_from_row(row) for row in cur.fetchall()]

    def delete_article(self, article_id: str) -> bool:
        """Delete an article together with its reading progress."""
        self.conn.execute("DELETE FROM reading_progress WHERE article_id = ?", (article_id,))
        cur = self.conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def set_summary(self, article_id: str, summary: str) -> bool:
        cur = self.conn.execute(
            "UPDATE articles SET summary = ? WHERE id = ?",
            (summary, article_id),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def mark_read(self, article_id: str, when: datetime | None = None) -> None:
        when = when or datetime.now(timezone.utc)
        self.conn.execute(
            "UPDATE articles SET last_read = ? WHERE id = ?",
            (when.isoformat(), article_id),
        )
        self.conn.commit()

    # ==================== Reading Progress ====================

    def get_progress(self, article_id: str, mode: ReadingMode) -> ReadingProgress | None:
        cur = self.conn.execute(
            """
            SELECT current_word_index, total_words
            FROM reading_progress
            WHERE article_id = ? AND mode = ?
            """,
            (article_id, mode.value),
        )
        row = cur.fetchone()
        if not row:
            return None
        return ReadingProgress(
            article_id=article_id,
            mode=mode,
            current_word_index=row[0],
            total_words=row[1],
        )

    def list_progress(self, article_id: str) -> list[ReadingProgress]:
        cur = self.conn.execute(
            """
            SELECT mode, current_word_index, total_words
            FROM reading_progress
            WHERE article_id = ?
            ORDER BY mode
            """,
            (article_id,),
        )
        return [
            ReadingProgress(
                article_id=article_id,
                mode=ReadingMode(row[0]),
                current_word_index=row[1],
                total_words=row[2],
            )
            for row in cur.fetchall()
        ]

    def save_progress(self, progress: ReadingProgress) -> None:
        """Create or update the progress record for (article, mode)."""
        self.conn.execute(
            """
            INSERT INTO reading_progress (article_id, mode, current_word_index, total_words, updated_at)
            VALUES (?, ?, ?, ?, datetime('now'))
            ON CONFLICT(article_id, mode) DO UPDATE SET
                current_word_index = excluded.current_word_index,
                total_words = excluded.total_words,
                updated_at = datetime('now')
            """,
            (
                progress.article_id,
                progress.mode.value,
                progress.current_word_index,
                progress.total_words,
            ),
        )
        self.conn.commit()

    # ==================== App Settings ====================

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        """Get a setting value by key."""
        cur = self.conn.execute(
            "SELECT value FROM app_settings WHERE key = ?",
            (key,)
        )
        row = cur.fetchone()
        return row[0] if row else default

    def set_setting(self, key: str, value: str) -> None:
        """Set a setting value (upsert)."""
        self.conn.execute(
            """
            INSERT INTO app_settings (key, value, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = datetime('now')
            """,
            (key, value)
        )
        self.conn.commit()

    def delete_setting(self, key: str) -> None:
        self.conn.execute("DELETE FROM app_settings WHERE key = ?", (key,))
        self.conn.commit()

    def get_app_settings(self) -> AppSettings:
        """Read reading preferences, writing the defaults on first access."""
        cur = self.conn.execute("SELECT key, value FROM app_settings")
        stored = {row[0]: row[1] for row in cur.fetchall()}

        if not any(name in stored for name in SETTINGS_FIELDS):
            defaults = AppSettings()
            self._write_app_settings(defaults)
            return defaults

        defaults = AppSettings()
        voice_id = stored.get("selected_voice_id")
        return AppSettings(
            rsvp_speed_wpm=int(stored.get("rsvp_speed_wpm", defaults.rsvp_speed_wpm)),
            tts_speed_multiplier=float(
                stored.get("tts_speed_multiplier", defaults.tts_speed_multiplier)
            ),
            focus_color=stored.get("focus_color", defaults.focus_color),
            selected_voice_id=voice_id or None,
            appearance_mode=AppearanceMode(
                stored.get("appearance_mode", defaults.appearance_mode.value)
            ),
        )

    def update_app_settings(self, **changes: Any) -> AppSettings:
        """Update individual preference fields. Unknown fields raise ValueError."""
        unknown = set(changes) - set(SETTINGS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")

        current = self.get_app_settings()
        for name, value in changes.items():
            if name == "appearance_mode" and not isinstance(value, AppearanceMode):
                value = AppearanceMode(value)
            setattr(current, name, value)
        self._write_app_settings(current)
        return current

    def _write_app_settings(self, settings: AppSettings) -> None:
        for name in SETTINGS_FIELDS:
            value = getattr(settings, name)
            if value is None:
                self.delete_setting(name)
            else:
                self.set_setting(name, _serialize_setting(value))


_db: DB | None = None


def init_db() -> None:
    global _db

    s = Settings.from_env()
    os.makedirs(os.path.dirname(s.db_path), exist_ok=True)

    conn = sqlite3.connect(s.db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    _db = DB(conn=conn)
    _db.init()
    logger.info(f"Database ready at {s.db_path}")


def get_db() -> DB:
    assert _db is not None, "DB not initialized"
    return _db
