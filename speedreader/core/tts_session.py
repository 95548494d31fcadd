"""Text-to-speech reading session.

Articles are spoken one sentence per utterance. Completion of an utterance
advances to the next sentence. Pause is a hard stop: the position is kept
here and resume re-speaks the current sentence from its start.

Restarting synthesis (pause, resume, speed change, jump) stops the current
utterance while the speech service's restart flag is set, so the stop's own
completion callback cannot advance the session. The flag is cleared a short
settle delay after the replacement utterance was issued.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Callable

from speedreader.core.content_types import Article, ReadingMode, ReadingProgress
from speedreader.core.settings import Settings
from speedreader.core.sleep_timer import SleepTimer
from speedreader.core.speech import SpeechError, SpeechService
from speedreader.core.storage import DB
from speedreader.core.tokenizer import count_words

logger = logging.getLogger(__name__)

SENTENCE_TERMINATORS = ".!?"

SPEED_PRESETS = (0.5, 1.0, 1.5, 2.0, 3.0, 4.0)

# None turns the sleep timer off
SLEEP_PRESETS_MINUTES = (None, 5, 10, 15, 30, 45, 60)


def split_sentences(text: str) -> list[str]:
    """Split text after every '.', '!' or '?'.

    Terminators stay with their sentence, a trailing fragment without one
    becomes the last sentence. "Dr. Smith" and "3.14" are split too.
    """
    if not text or not text.strip():
        return []

    sentences: list[str] = []
    start = 0
    for i, ch in enumerate(text):
        if ch in SENTENCE_TERMINATORS:
            sentence = text[start:i + 1].strip()
            if sentence:
                sentences.append(sentence)
            start = i + 1

    remainder = text[start:].strip()
    if remainder:
        sentences.append(remainder)

    return sentences or [text.strip()]


def word_index_for_sentence(sentences: list[str], sentence_index: int) -> int:
    """Word offset of the first word of a sentence."""
    return sum(count_words(s) for s in sentences[:max(sentence_index, 0)])


def sentence_index_for_word(sentences: list[str], word_index: int) -> int:
    """Sentence containing a word offset (last sentence when past the end)."""
    if not sentences or word_index <= 0:
        return 0

    cumulative = 0
    for i, sentence in enumerate(sentences):
        cumulative += count_words(sentence)
        if cumulative > word_index:
            return i
    return len(sentences) - 1


class TTSSession:
    """Sentence-by-sentence playback of one article."""

    def __init__(
        self,
        article: Article,
        speech: SpeechService,
        db: DB,
        speed: float | None = None,
        voice_id: str | None = None,
        settle_delay: float | None = None,
        sleep_tick_interval: float = 1.0,
        on_change: Callable[["TTSSession"], None] | None = None,
    ) -> None:
        self.article = article
        self.speech = speech
        self.db = db
        self.speed = speed
        self.voice_id = voice_id
        if settle_delay is None:
            settle_delay = Settings.from_env().tts_settle_delay_ms / 1000
        self.settle_delay = settle_delay
        self.on_change = on_change

        text = article.content if article.content.strip() else article.title
        self.sentences = split_sentences(text)
        self.total_words = count_words(text)

        self.is_playing = False
        self.is_paused = False
        self.current_sentence_index = 0
        # (start, length) of the characters being spoken in the current sentence
        self.spoken_range: tuple[int, int] | None = None

        self.selected_sleep_minutes: int | None = None
        self.sleep_timer = SleepTimer(self._on_sleep_timer_expired, tick_interval=sleep_tick_interval)

        self._settle_task: asyncio.Task | None = None
        self._has_record = False
        self._advanced = False

        speech.set_progress_handler(self._on_speech_progress)
        speech.set_completion_handler(self._on_speech_finished)

    @property
    def sentence_count(self) -> int:
        return len(self.sentences)

    @property
    def current_sentence(self) -> str:
        if not self.sentences:
            return ""
        return self.sentences[self.current_sentence_index]

    @property
    def current_word_index(self) -> int:
        return word_index_for_sentence(self.sentences, self.current_sentence_index)

    @property
    def sleep_time_remaining(self) -> int:
        return self.sleep_timer.remaining

    # ==================== Commands ====================

    def load(self) -> None:
        """Restore saved TTS progress and reading preferences."""
        if self.speed is None or self.voice_id is None:
            try:
                prefs = self.db.get_app_settings()
            except sqlite3.Error as e:
                logger.warning(f"Could not read speech preferences: {e}")
            else:
                if self.speed is None:
                    self.speed = prefs.tts_speed_multiplier
                if self.voice_id is None:
                    self.voice_id = prefs.selected_voice_id

        try:
            progress = self.db.get_progress(self.article.id, ReadingMode.TTS)
            self.db.mark_read(self.article.id)
        except sqlite3.Error as e:
            logger.warning(f"Could not load TTS progress for {self.article.id}: {e}")
            progress = None

        if progress is not None:
            self._has_record = True
            self.current_sentence_index = sentence_index_for_word(
                self.sentences, progress.current_word_index
            )
            self._advanced = self.current_sentence_index > 0
            logger.debug(
                f"Restored TTS position: word {progress.current_word_index} "
                f"-> sentence {self.current_sentence_index}"
            )
        self._notify()

    def start(self) -> None:
        """Start reading at the restored position, or from the beginning."""
        if not self.sentences:
            return

        if self.is_playing:
            # Already reading: restart the current sentence instead of queueing another
            if self.is_paused:
                self.resume()
            else:
                self._speak_current(restart=True)
                self._notify()
            return

        self.is_playing = True
        self.is_paused = False

        if self.selected_sleep_minutes:
            self.sleep_timer.start(self.selected_sleep_minutes * 60)

        if not 1 <= self.current_sentence_index < self.sentence_count:
            self.current_sentence_index = 0

        self._speak_current(restart=self.speech.is_restarting)
        self._notify()

    def pause(self) -> None:
        """Stop speech immediately, keeping the position."""
        if not self.is_playing or self.is_paused:
            return

        self.is_paused = True
        self.sleep_timer.pause()
        self.save_progress()
        self._cancel_settle()
        # The flag stays set until the next utterance settles
        self.speech.stop_for_restart()
        logger.debug(f"Paused at sentence {self.current_sentence_index}")
        self._notify()

    def resume(self) -> None:
        """Re-speak the current sentence from its beginning."""
        if not self.is_playing or not self.is_paused:
            return

        self.is_paused = False
        self.sleep_timer.resume()

        if self.current_sentence_index >= self.sentence_count:
            self.is_playing = False
            self._notify()
            return

        self._speak_current(restart=True)
        self._notify()

    def toggle(self) -> None:
        if not self.is_playing:
            self.start()
        elif self.is_paused:
            self.resume()
        else:
            self.pause()

    def stop(self) -> None:
        self.is_playing = False
        self.is_paused = False
        self.current_sentence_index = 0
        self.spoken_range = None
        self.sleep_timer.stop()
        self._cancel_settle()
        self.speech.stop_for_restart()
        self._schedule_settle()
        self._notify()

    def set_speed(self, multiplier: float) -> None:
        """Change the speech rate; the current sentence restarts at the new rate."""
        if multiplier <= 0:
            raise ValueError(f"speed multiplier must be positive, got {multiplier}")
        self.speed = multiplier

        try:
            self.db.update_app_settings(tts_speed_multiplier=multiplier)
        except sqlite3.Error as e:
            logger.warning(f"Could not store speech speed: {e}")

        if self.is_playing and not self.is_paused:
            logger.debug(f"Speed -> {multiplier}, restarting sentence {self.current_sentence_index}")
            self._speak_current(restart=True)
        self._notify()

    def jump_to_sentence(self, index: int) -> None:
        """Move to a sentence; speech restarts there when playing."""
        if not 0 <= index < self.sentence_count:
            return

        self.current_sentence_index = index
        if index > 0:
            self._advanced = True

        if self.is_playing and not self.is_paused:
            self._speak_current(restart=True)
        self._notify()

    def select_sleep_duration(self, minutes: int | None) -> None:
        """Arm (or with None disarm) the sleep timer."""
        if minutes is not None and minutes <= 0:
            raise ValueError(f"minutes must be positive, got {minutes}")

        self.selected_sleep_minutes = minutes
        self.sleep_timer.stop()
        if minutes and self.is_playing and not self.is_paused:
            self.sleep_timer.start(minutes * 60)
        self._notify()

    def close(self) -> None:
        """Persist the position and release speech and timers."""
        self.save_progress()
        self._cancel_settle()
        self.sleep_timer.stop()
        self.speech.cleanup()
        self.is_playing = False
        self.is_paused = False

    def save_progress(self) -> None:
        """Upsert the (article, tts) record as a word offset."""
        if not self.sentences:
            return

        word_index = self.current_word_index
        if word_index == 0 and not self._has_record and not self._advanced:
            logger.debug(f"Skipping progress save for untouched {self.article.id}")
            return

        progress = ReadingProgress(
            article_id=self.article.id,
            mode=ReadingMode.TTS,
            current_word_index=word_index,
            total_words=self.total_words,
        )
        try:
            self.db.save_progress(progress)
        except sqlite3.Error as e:
            logger.warning(f"Failed to save TTS progress for {self.article.id}: {e}")
            return
        self._has_record = True

    # ==================== Speech ====================

    def _speak_current(self, restart: bool) -> None:
        if restart:
            self._cancel_settle()
            self.speech.stop_for_restart()

        self.spoken_range = None
        try:
            self.speech.speak(self.current_sentence, self.speed or 1.0, self.voice_id)
        except SpeechError as e:
            logger.warning(f"Speech failed at sentence {self.current_sentence_index}: {e}")
            self.speech.clear_restart_flag()
            self.is_playing = False
            self.is_paused = False
            self.sleep_timer.stop()
            return

        if self.speech.is_restarting:
            self._schedule_settle()

    def _schedule_settle(self) -> None:
        self._cancel_settle()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Without a loop engine callbacks are delivered inline
            self.speech.clear_restart_flag()
            return
        self._settle_task = loop.create_task(self._settle())

    async def _settle(self) -> None:
        await asyncio.sleep(self.settle_delay)
        self.speech.clear_restart_flag()
        self._settle_task = None

    def _cancel_settle(self) -> None:
        task, self._settle_task = self._settle_task, None
        if task is not None and not task.done():
            task.cancel()

    def _on_speech_progress(self, start: int, length: int) -> None:
        self.spoken_range = (start, length)

    def _on_speech_finished(self) -> None:
        if not self.is_playing or self.is_paused:
            return

        if self.current_sentence_index < self.sentence_count - 1:
            self.current_sentence_index += 1
            self._advanced = True
            self._speak_current(restart=False)
        else:
            logger.debug(f"Finished reading {self.article.id}")
            self.is_playing = False
            self.is_paused = False
            self.current_sentence_index = 0
            self.spoken_range = None
            self.sleep_timer.stop()
        self._notify()

    def _on_sleep_timer_expired(self) -> None:
        self.pause()
        self.selected_sleep_minutes = None
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
