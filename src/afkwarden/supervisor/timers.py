"""Scheduled-task primitives for the supervisor.

Every timed concern (reconnect retry, rotation, handoff, polling loops) owns
exactly one of these objects. Rescheduling a Timer first cancels the handle
it already holds, so timers never pile up.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class Cancellable(Protocol):
    """Handle returned by a call_later implementation."""

    def cancel(self) -> None: ...


CallLater = Callable[[float, Callable[[], None]], Cancellable]


def loop_call_later(delay: float, callback: Callable[[], None]) -> Cancellable:
    """Schedule callback on the running asyncio loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


class Timer:
    """One-shot timer that owns at most one pending callback.

    Attributes:
        name: Name used in log entries
    """

    def __init__(self, name: str, call_later: CallLater | None = None):
        """Initialize timer.

        Args:
            name: Name used in log entries
            call_later: Scheduling function (defaults to the running loop)
        """
        self.name = name
        self._call_later = call_later or loop_call_later
        self._handle: Cancellable | None = None
        self._logger = structlog.get_logger(__name__)

    @property
    def pending(self) -> bool:
        """Whether a callback is waiting to fire."""
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Replace any pending callback with a new one.

        Args:
            delay: Seconds until callback fires
            callback: Function to call
        """
        self.cancel()

        def fire() -> None:
            self._handle = None
            try:
                callback()
            except Exception as e:
                self._logger.error(
                    "timer_callback_failed",
                    timer=self.name,
                    error=str(e),
                    exc_info=True,
                )

        self._handle = self._call_later(max(delay, 0.0), fire)

    def cancel(self) -> None:
        """Cancel the pending callback, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class PeriodicTask:
    """Background loop calling a synchronous tick at a fixed interval.

    The first tick happens one interval after start. A failing tick is
    logged and the loop keeps going.
    """

    def __init__(self, name: str, interval: float, tick: Callable[[], object]):
        """Initialize periodic task.

        Args:
            name: Name used in log entries
            interval: Seconds between ticks
            tick: Function called on every tick
        """
        self.name = name
        self.interval = interval
        self._tick = tick
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._logger = structlog.get_logger(__name__)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the loop. No-op if already running."""
        if self._running:
            self._logger.warning("periodic_task_already_running", task=self.name)
            return

        self._running = True
        self._task = asyncio.create_task(self._loop(), name=self.name)
        self._logger.debug("periodic_task_started", task=self.name, interval=self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if not self._running:
            return

        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._logger.debug("periodic_task_stopped", task=self.name)

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                self._tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._logger.error(
                    "periodic_task_error",
                    task=self.name,
                    error=str(e),
                    exc_info=True,
                )
