"""Countdown that stops TTS playback after a chosen duration."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SleepTimer:
    """One-shot countdown in whole seconds.

    The countdown only advances while running, so pausing reading pauses it
    too. When a loop is running a task calls ``tick()`` every
    ``tick_interval`` seconds; without one the owner ticks manually.
    """

    def __init__(self, on_expire: Callable[[], None], tick_interval: float = 1.0) -> None:
        self._on_expire = on_expire
        self._tick_interval = tick_interval
        self._remaining = 0
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def remaining(self) -> int:
        """Seconds left on the countdown."""
        return self._remaining

    @property
    def running(self) -> bool:
        return self._running

    def start(self, seconds: int) -> None:
        """(Re)arm the countdown."""
        if seconds <= 0:
            raise ValueError(f"seconds must be positive, got {seconds}")
        self._cancel_task()
        self._remaining = int(seconds)
        self._running = True
        self._start_task()
        logger.debug(f"Sleep timer armed for {seconds}s")

    def pause(self) -> None:
        if not self._running:
            return
        self._running = False
        self._cancel_task()

    def resume(self) -> None:
        if self._running or self._remaining <= 0:
            return
        self._running = True
        self._start_task()

    def stop(self) -> None:
        """Disarm and clear the countdown without firing."""
        self._running = False
        self._remaining = 0
        self._cancel_task()

    def tick(self) -> None:
        """Count down one second; fire on reaching zero."""
        if not self._running:
            return

        self._remaining -= 1
        if self._remaining > 0:
            return

        self._remaining = 0
        self._running = False
        self._cancel_task()
        logger.info("Sleep timer expired")
        self._on_expire()

    def _start_task(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._run())

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done() or task is _current_task():
            return
        task.cancel()

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self._tick_interval)
            self.tick()
