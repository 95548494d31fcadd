"""Tests for speech.py"""

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from speedreader.core.speech import BASE_RATE, SpeechError, SpeechService


class TestRate:
    def test_base_rate(self, engine):
        service = SpeechService(engine)
        assert service.rate_for(1.0) == BASE_RATE == 0.5

    def test_scaled_and_clamped(self, engine):
        service = SpeechService(engine)
        assert service.rate_for(0.5) == 0.25
        assert service.rate_for(1.5) == 0.75
        assert service.rate_for(4.0) == engine.MAX_RATE

    def test_engine_bounds(self, engine):
        engine.MIN_RATE = 0.1
        engine.MAX_RATE = 0.6
        service = SpeechService(engine)
        assert service.rate_for(0.1) == 0.1
        assert service.rate_for(3.0) == 0.6

    def test_speak_passes_rate_and_voice(self, engine):
        SpeechService(engine).speak("Hello there.", 2.0, "voice-1")
        assert engine.spoken == [("Hello there.", 1.0, "voice-1")]


class TestErrors:
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text(self, engine, text):
        with pytest.raises(SpeechError):
            SpeechService(engine).speak(text)
        assert engine.spoken == []

    def test_engine_failure(self, engine):
        engine.fail = True
        with pytest.raises(SpeechError):
            SpeechService(engine).speak("Hello.")


class TestCallbacks:
    def test_progress_forwarded(self, engine):
        service = SpeechService(engine)
        on_progress = MagicMock()
        service.set_progress_handler(on_progress)
        service.speak("Hello world.")
        engine.progress(6, 5)
        on_progress.assert_called_once_with(6, 5)

    def test_completion_forwarded(self, engine):
        service = SpeechService(engine)
        on_done = MagicMock()
        service.set_completion_handler(on_done)
        service.speak("Hello.")
        engine.finish()
        on_done.assert_called_once()

    def test_restart_suppresses_completion(self, engine):
        service = SpeechService(engine)
        on_done = MagicMock()
        service.set_completion_handler(on_done)
        service.speak("Hello.")

        service.stop_for_restart()
        assert service.is_restarting
        on_done.assert_not_called()

        service.speak("Hello again.")
        service.clear_restart_flag()
        engine.finish()
        on_done.assert_called_once()

    def test_cleanup_drops_handlers(self, engine):
        service = SpeechService(engine)
        on_done = MagicMock()
        service.set_completion_handler(on_done)
        service.speak("Hello.")
        service.cleanup()
        on_done.assert_not_called()
        assert not engine.is_speaking

    @pytest.mark.asyncio
    async def test_background_thread_callbacks_run_on_loop(self, engine):
        service = SpeechService(engine)
        loop_thread = threading.get_ident()
        seen = []
        service.set_completion_handler(lambda: seen.append(threading.get_ident()))
        service.speak("Hello.")

        worker = threading.Thread(target=engine.finish)
        worker.start()
        worker.join()
        assert seen == []

        await asyncio.sleep(0.01)
        assert seen == [loop_thread]

    @pytest.mark.asyncio
    async def test_stale_completion_swallowed_on_loop(self, engine):
        service = SpeechService(engine)
        on_done = MagicMock()
        service.set_completion_handler(on_done)
        service.speak("First.")

        service.stop_for_restart()
        service.speak("Second.")
        await asyncio.sleep(0)
        on_done.assert_not_called()

        service.clear_restart_flag()
        engine.finish()
        await asyncio.sleep(0)
        on_done.assert_called_once()
