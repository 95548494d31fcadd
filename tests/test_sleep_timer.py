"""Tests for sleep_timer.py"""

import asyncio
from unittest.mock import MagicMock

import pytest

from speedreader.core.sleep_timer import SleepTimer


class TestManualTicks:
    def test_expires_after_playing_time(self):
        on_expire = MagicMock()
        timer = SleepTimer(on_expire)
        timer.start(60)

        for _ in range(30):
            timer.tick()
        timer.pause()
        # Paused for 30 seconds of wall-clock time
        for _ in range(30):
            timer.tick()
        assert timer.remaining == 30
        on_expire.assert_not_called()

        timer.resume()
        for _ in range(29):
            timer.tick()
        assert timer.remaining == 1
        on_expire.assert_not_called()

        timer.tick()
        on_expire.assert_called_once()
        assert timer.remaining == 0
        assert not timer.running

    def test_one_shot(self):
        on_expire = MagicMock()
        timer = SleepTimer(on_expire)
        timer.start(1)
        timer.tick()
        timer.tick()
        timer.resume()
        timer.tick()
        on_expire.assert_called_once()

    def test_stop_clears(self):
        on_expire = MagicMock()
        timer = SleepTimer(on_expire)
        timer.start(10)
        timer.stop()
        assert timer.remaining == 0
        assert not timer.running
        timer.resume()
        timer.tick()
        on_expire.assert_not_called()

    def test_restart_resets_countdown(self):
        timer = SleepTimer(MagicMock())
        timer.start(10)
        timer.tick()
        timer.start(5)
        assert timer.remaining == 5

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_rejects_non_positive(self, seconds):
        with pytest.raises(ValueError):
            SleepTimer(MagicMock()).start(seconds)


class TestLoopTicks:
    @pytest.mark.asyncio
    async def test_expires_on_loop(self):
        expired = asyncio.Event()
        timer = SleepTimer(expired.set, tick_interval=0.01)
        timer.start(3)
        await asyncio.wait_for(expired.wait(), timeout=2.0)
        assert timer.remaining == 0

    @pytest.mark.asyncio
    async def test_pause_stops_countdown(self):
        on_expire = MagicMock()
        timer = SleepTimer(on_expire, tick_interval=0.01)
        timer.start(1000)
        await asyncio.sleep(0.05)
        timer.pause()
        remaining = timer.remaining
        await asyncio.sleep(0.05)
        assert timer.remaining == remaining
        assert remaining < 1000
        timer.stop()
