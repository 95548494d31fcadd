"""RSVP reading session: one word at a time at a fixed focus point.

States::

    IDLE -> READY -> PLAYING <-> PAUSED
                     PLAYING -> FINISHED -> PLAYING (from word 0)
                                FINISHED -> READY (reset / skip back)

All public methods are plain calls made on the event loop that owns the
session. Advancing is driven by a single timer task whose interval is
recomputed for every word.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from enum import Enum
from typing import Callable

from speedreader.core.content_types import AppSettings, ReadingMode, ReadingProgress
from speedreader.core.storage import DB
from speedreader.core.tokenizer import (
    RSVPWord,
    TokenizedText,
    get_delay_ms,
    get_delay_multiplier,
    split_word,
    tokenize,
)

logger = logging.getLogger(__name__)

SKIP_WORDS = 5


class RSVPState(str, Enum):
    IDLE = "idle"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class RSVPSession:
    """Word-by-word playback of one article."""

    def __init__(
        self,
        article_id: str,
        db: DB,
        wpm: int | None = None,
        on_change: Callable[["RSVPSession"], None] | None = None,
    ) -> None:
        self.article_id = article_id
        self.db = db
        self.wpm = wpm
        self.on_change = on_change

        self.state = RSVPState.IDLE
        self.current_word_index = 0
        self.text: TokenizedText = tokenize("")

        self._timer_task: asyncio.Task | None = None
        # Progress record exists in storage (loaded or written this session)
        self._has_record = False
        # Position moved past word 0 at some point this session
        self._advanced = False

    # ==================== Read-only view ====================

    @property
    def words(self) -> list[str]:
        return self.text.words

    @property
    def word_count(self) -> int:
        return len(self.text)

    @property
    def current_word(self) -> str:
        if not self.words:
            return ""
        return self.words[self.current_word_index]

    @property
    def current_rsvp_word(self) -> RSVPWord:
        return split_word(self.current_word)

    @property
    def progress_fraction(self) -> float:
        """0.0 at the first word, 1.0 at the last."""
        if not self.words:
            return 0.0
        return self.current_word_index / max(self.word_count - 1, 1)

    @property
    def current_interval_ms(self) -> float:
        return get_delay_ms(self._effective_wpm()) * get_delay_multiplier(self.current_word)

    # ==================== Commands ====================

    def load(self, content: str, title: str = "") -> None:
        """Tokenize the article and restore saved RSVP progress."""
        self._cancel_timer()
        self.text = tokenize(content if content and content.strip() else title)
        self.current_word_index = 0
        self._advanced = False
        self._has_record = False

        if not self.words:
            self.state = RSVPState.IDLE
            self._notify()
            return

        progress = self._load_progress()
        if progress is not None:
            self._has_record = True
            self.current_word_index = max(0, min(progress.current_word_index, self.word_count - 1))
            self._advanced = self.current_word_index > 0

        if self.wpm is None:
            self.wpm = self._stored_wpm()

        self.state = RSVPState.PAUSED if self.current_word_index > 0 else RSVPState.READY

        try:
            self.db.mark_read(self.article_id)
        except sqlite3.Error as e:
            logger.warning(f"Could not mark {self.article_id} as read: {e}")

        logger.debug(
            f"Loaded {self.word_count} words for {self.article_id}, "
            f"resuming at {self.current_word_index}"
        )
        self._notify()

    def play(self) -> None:
        if self.state not in (RSVPState.READY, RSVPState.PAUSED, RSVPState.FINISHED):
            return
        if self.state == RSVPState.FINISHED:
            self.current_word_index = 0
        self.state = RSVPState.PLAYING
        self._start_timer()
        self._notify()

    def pause(self) -> None:
        if self.state != RSVPState.PLAYING:
            return
        self._cancel_timer()
        self.state = RSVPState.PAUSED
        self.save_progress()
        self._notify()

    def toggle(self) -> None:
        if self.state == RSVPState.PLAYING:
            self.pause()
        else:
            self.play()

    def tick(self) -> None:
        """Show the next word, or finish at the last one."""
        if self.state != RSVPState.PLAYING:
            return

        if self.current_word_index < self.word_count - 1:
            self.current_word_index += 1
            self._advanced = True
        else:
            self._cancel_timer()
            self.state = RSVPState.FINISHED
            logger.debug(f"Finished {self.article_id}")
        self._notify()

    def skip_forward(self, count: int = SKIP_WORDS) -> None:
        if self.state == RSVPState.IDLE:
            return
        last = self.word_count - 1
        self.current_word_index = min(self.current_word_index + count, last)
        if self.current_word_index > 0:
            self._advanced = True
        if self.current_word_index == last and self.state != RSVPState.PLAYING:
            self.state = RSVPState.FINISHED
        self._notify()

    def skip_backward(self, count: int = SKIP_WORDS) -> None:
        if self.state == RSVPState.IDLE:
            return
        self.current_word_index = max(self.current_word_index - count, 0)
        if self.state == RSVPState.FINISHED:
            self.state = RSVPState.READY
        self._notify()

    def reset(self) -> None:
        self._cancel_timer()
        self.current_word_index = 0
        self.state = RSVPState.READY if self.words else RSVPState.IDLE
        self._notify()

    def set_wpm(self, wpm: int) -> None:
        """Change speed; a running timer restarts without moving the position."""
        if wpm <= 0:
            raise ValueError(f"wpm must be positive, got {wpm}")
        self.wpm = wpm

        try:
            self.db.update_app_settings(rsvp_speed_wpm=wpm)
        except sqlite3.Error as e:
            logger.warning(f"Could not store reading speed: {e}")

        if self.state == RSVPState.PLAYING:
            self._start_timer()
        self._notify()

    def unload(self) -> None:
        """Stop playback and persist the position."""
        self._cancel_timer()
        if self.state == RSVPState.PLAYING:
            self.state = RSVPState.PAUSED
        if self.words:
            self.save_progress()

    def save_progress(self) -> None:
        """Upsert the (article, rsvp) record. Failures are logged only."""
        if not self.words:
            return
        if self.current_word_index == 0 and not self._has_record and not self._advanced:
            logger.debug(f"Skipping progress save for untouched {self.article_id}")
            return

        progress = ReadingProgress(
            article_id=self.article_id,
            mode=ReadingMode.RSVP,
            current_word_index=self.current_word_index,
            total_words=self.word_count,
        )
        try:
            self.db.save_progress(progress)
        except sqlite3.Error as e:
            logger.warning(f"Failed to save RSVP progress for {self.article_id}: {e}")
            return
        self._has_record = True

    # ==================== Internals ====================

    def _load_progress(self) -> ReadingProgress | None:
        try:
            return self.db.get_progress(self.article_id, ReadingMode.RSVP)
        except sqlite3.Error as e:
            logger.warning(f"Could not load RSVP progress for {self.article_id}: {e}")
            return None

    def _stored_wpm(self) -> int | None:
        try:
            return self.db.get_app_settings().rsvp_speed_wpm
        except sqlite3.Error as e:
            logger.warning(f"Could not read reading speed: {e}")
            return None

    def _effective_wpm(self) -> int:
        return self.wpm or AppSettings().rsvp_speed_wpm

    def _start_timer(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the owner drives tick() itself
            return
        self._timer_task = loop.create_task(self._run_timer())

    def _cancel_timer(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None or task.done() or task is _current_task():
            return
        task.cancel()

    async def _run_timer(self) -> None:
        while self.state == RSVPState.PLAYING:
            await asyncio.sleep(self.current_interval_ms / 1000)
            if self.state != RSVPState.PLAYING:
                break
            self.tick()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
