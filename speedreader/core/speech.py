"""Speech synthesis service.

Wraps a platform speech engine and adds the pieces the reader needs:
rate mapping, a restart-suppression flag, and delivery of engine callbacks
onto the asyncio event loop that owns the reading session.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

# Engine rate for a 1.0x speed multiplier
BASE_RATE = 0.5

ProgressHandler = Callable[[int, int], None]
CompletionHandler = Callable[[], None]


class SpeechError(Exception):
    """Speech synthesis failed or was given nothing to say."""


@dataclass
class SpeechCallbacks:
    """Callbacks an engine invokes, possibly from a background thread."""

    on_progress: ProgressHandler
    on_finished: CompletionHandler


class SpeechEngine(ABC):
    """Platform speech synthesizer.

    Implementations call ``callbacks.on_progress(start, length)`` for the
    character range about to be spoken and ``callbacks.on_finished()`` when
    an utterance ends, including when it ends because ``stop()`` was called.
    """

    MIN_RATE: float = 0.0
    MAX_RATE: float = 1.0

    def __init__(self) -> None:
        self.callbacks: SpeechCallbacks | None = None

    def bind(self, callbacks: SpeechCallbacks | None) -> None:
        self.callbacks = callbacks

    @abstractmethod
    def speak(self, text: str, rate: float, voice_id: str | None = None) -> None:
        """Start speaking one utterance."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop speaking immediately."""
        ...

    @property
    @abstractmethod
    def is_speaking(self) -> bool:
        ...


class SpeechService:
    """Engine wrapper owned by a TTS session."""

    def __init__(self, engine: SpeechEngine) -> None:
        self._engine = engine
        self._progress_handler: ProgressHandler | None = None
        self._completion_handler: CompletionHandler | None = None
        self._restarting = False
        self._loop: asyncio.AbstractEventLoop | None = None
        engine.bind(SpeechCallbacks(
            on_progress=self._on_engine_progress,
            on_finished=self._on_engine_finished,
        ))

    @property
    def is_restarting(self) -> bool:
        return self._restarting

    @property
    def is_speaking(self) -> bool:
        return self._engine.is_speaking

    def set_progress_handler(self, handler: ProgressHandler | None) -> None:
        self._progress_handler = handler

    def set_completion_handler(self, handler: CompletionHandler | None) -> None:
        self._completion_handler = handler

    def rate_for(self, speed_multiplier: float) -> float:
        """Engine rate for a speed multiplier, clamped to the engine's bounds."""
        rate = BASE_RATE * speed_multiplier
        return max(self._engine.MIN_RATE, min(rate, self._engine.MAX_RATE))

    def speak(
        self,
        text: str,
        speed_multiplier: float = 1.0,
        voice_id: str | None = None,
    ) -> None:
        """Speak one utterance.

        Raises:
            SpeechError: text is blank or the engine refused it
        """
        if not text or not text.strip():
            raise SpeechError("Invalid or empty text provided.")

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

        rate = self.rate_for(speed_multiplier)
        logger.debug(f"speak: rate={rate:.3f}, restarting={self._restarting}, {len(text)} chars")
        try:
            self._engine.speak(text, rate, voice_id)
        except SpeechError:
            raise
        except Exception as e:
            raise SpeechError(f"Failed to synthesize speech: {e}") from e

    def stop(self) -> None:
        self._engine.stop()

    def stop_for_restart(self) -> None:
        """Stop speaking and swallow completions until clear_restart_flag()."""
        self._restarting = True
        self._engine.stop()

    def clear_restart_flag(self) -> None:
        self._restarting = False

    def cleanup(self) -> None:
        """Drop handlers and stop speaking."""
        self._progress_handler = None
        self._completion_handler = None
        self._engine.stop()

    # Engine callbacks may arrive on any thread; state is only touched on the loop.

    def _schedule(self, fn: Callable[..., None], *args: int) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            fn(*args)
            return
        loop.call_soon_threadsafe(fn, *args)

    def _on_engine_progress(self, start: int, length: int) -> None:
        self._schedule(self._dispatch_progress, start, length)

    def _on_engine_finished(self) -> None:
        self._schedule(self._dispatch_completion)

    def _dispatch_progress(self, start: int, length: int) -> None:
        if self._progress_handler is not None:
            self._progress_handler(start, length)

    def _dispatch_completion(self) -> None:
        if self._restarting:
            logger.debug("Suppressing completion during restart")
            return
        if self._completion_handler is not None:
            self._completion_handler()
