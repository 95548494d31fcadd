"""Records shared by extraction, storage and the reading sessions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ReadingMode(str, Enum):
    """Which reader a progress record belongs to."""

    RSVP = "rsvp"
    TTS = "tts"


class AppearanceMode(str, Enum):
    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"


@dataclass(frozen=True)
class Article:
    """A saved article. Content never changes after extraction."""

    url: str
    title: str
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    summary: str | None = None
    date_added: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_read: datetime | None = None

    def to_dict(self, include_content: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "date_added": self.date_added.isoformat(),
            "last_read": self.last_read.isoformat() if self.last_read else None,
        }
        if include_content:
            data["content"] = self.content
        return data


@dataclass
class ReadingProgress:
    """Position within an article for one reading mode.

    Both modes store a word offset; TTS translates its sentence index
    to and from this offset. RSVP stores the word on screen, so that word
    counts as read; TTS stores the first word of the sentence being spoken.
    """

    article_id: str
    mode: ReadingMode
    current_word_index: int = 0
    total_words: int = 0

    @property
    def fraction(self) -> float:
        if self.total_words <= 0:
            return 0.0
        words_read = self.current_word_index
        if self.mode == ReadingMode.RSVP:
            words_read += 1
        return min(words_read / self.total_words, 1.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "article_id": self.article_id,
            "mode": self.mode.value,
            "current_word_index": self.current_word_index,
            "total_words": self.total_words,
            "fraction": round(self.fraction, 4),
        }


@dataclass
class AppSettings:
    """User-facing reading preferences."""

    rsvp_speed_wpm: int = 300
    tts_speed_multiplier: float = 1.0
    focus_color: str = "#FF3B30"
    selected_voice_id: str | None = None
    appearance_mode: AppearanceMode = AppearanceMode.SYSTEM

    def to_dict(self) -> dict[str, Any]:
        return {
            "rsvp_speed_wpm": self.rsvp_speed_wpm,
            "tts_speed_multiplier": self.tts_speed_multiplier,
            "focus_color": self.focus_color,
            "selected_voice_id": self.selected_voice_id,
            "appearance_mode": self.appearance_mode.value,
        }
