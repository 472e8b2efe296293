"""Unit tests for Timer and PeriodicTask on a real event loop."""

from __future__ import annotations

import asyncio

import pytest
from structlog.testing import capture_logs

from afkwarden.supervisor.timers import PeriodicTask, Timer


class TestTimer:
    """Test the one-shot timer."""

    @pytest.mark.asyncio
    async def test_fires_once(self) -> None:
        fired: list[int] = []
        timer = Timer("test")

        timer.schedule(0.01, lambda: fired.append(1))
        assert timer.pending
        await asyncio.sleep(0.05)

        assert fired == [1]
        assert not timer.pending

    @pytest.mark.asyncio
    async def test_reschedule_replaces_pending_callback(self) -> None:
        """Only the latest callback fires."""
        fired: list[str] = []
        timer = Timer("test")

        timer.schedule(0.01, lambda: fired.append("first"))
        timer.schedule(0.01, lambda: fired.append("second"))
        await asyncio.sleep(0.05)

        assert fired == ["second"]

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        fired: list[int] = []
        timer = Timer("test")

        timer.schedule(0.01, lambda: fired.append(1))
        timer.cancel()
        await asyncio.sleep(0.05)

        assert fired == []
        assert not timer.pending

    @pytest.mark.asyncio
    async def test_failing_callback_is_logged(self) -> None:
        def boom() -> None:
            raise RuntimeError("boom")

        timer = Timer("test")
        with capture_logs() as logs:
            timer.schedule(0.0, boom)
            await asyncio.sleep(0.02)

        assert logs[0]["event"] == "timer_callback_failed"
        assert logs[0]["timer"] == "test"
        assert not timer.pending

    def test_custom_call_later(self) -> None:
        """An injected scheduler receives the delay and can cancel."""
        calls: list[float] = []

        class Handle:
            cancelled = False

            def cancel(self) -> None:
                self.cancelled = True

        handle = Handle()

        def call_later(delay, callback):
            calls.append(delay)
            return handle

        timer = Timer("test", call_later)
        timer.schedule(-3, lambda: None)
        timer.cancel()

        assert calls == [0.0]
        assert handle.cancelled


class TestPeriodicTask:
    """Test the periodic loop."""

    @pytest.mark.asyncio
    async def test_ticks_until_stopped(self) -> None:
        ticks: list[int] = []
        task = PeriodicTask("test", 0.01, lambda: ticks.append(1))

        await task.start()
        assert task.running
        await asyncio.sleep(0.06)
        await task.stop()
        count = len(ticks)
        await asyncio.sleep(0.03)

        assert count >= 2
        assert len(ticks) == count
        assert not task.running

    @pytest.mark.asyncio
    async def test_failing_tick_keeps_loop_alive(self) -> None:
        ticks: list[int] = []

        def tick() -> None:
            ticks.append(1)
            raise RuntimeError("tick failed")

        task = PeriodicTask("test", 0.01, tick)
        with capture_logs() as logs:
            await task.start()
            await asyncio.sleep(0.06)
            await task.stop()

        assert len(ticks) >= 2
        assert "periodic_task_error" in [e["event"] for e in logs]

    @pytest.mark.asyncio
    async def test_double_start_warns(self) -> None:
        task = PeriodicTask("test", 10, lambda: None)
        await task.start()

        with capture_logs() as logs:
            await task.start()

        await task.stop()
        assert logs[0]["event"] == "periodic_task_already_running"

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self) -> None:
        task = PeriodicTask("test", 10, lambda: None)
        await task.stop()
        assert not task.running
