"""Shared fixtures."""

import sqlite3

import pytest

from speedreader.core.speech import SpeechEngine
from speedreader.core.storage import DB


class FakeSpeechEngine(SpeechEngine):
    """Records utterances; reports completion on stop like platform engines do."""

    def __init__(self):
        super().__init__()
        self.spoken: list[tuple[str, float, str | None]] = []
        self.speaking = False
        self.stop_calls = 0
        self.fail = False

    def speak(self, text, rate, voice_id=None):
        if self.fail:
            raise RuntimeError("engine unavailable")
        self.spoken.append((text, rate, voice_id))
        self.speaking = True

    def stop(self):
        self.stop_calls += 1
        if self.speaking:
            self.speaking = False
            self.callbacks.on_finished()

    @property
    def is_speaking(self):
        return self.speaking

    def finish(self):
        """Simulate the current utterance ending naturally."""
        self.speaking = False
        self.callbacks.on_finished()

    def progress(self, start, length):
        self.callbacks.on_progress(start, length)

    @property
    def last_text(self):
        return self.spoken[-1][0] if self.spoken else None


@pytest.fixture
def db():
    """In-memory database with schema."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    database = DB(conn=conn)
    database.init()
    return database


@pytest.fixture
def engine():
    return FakeSpeechEngine()
