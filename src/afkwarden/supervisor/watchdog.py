"""Liveness watchdog for the afkwarden supervisor.

The watchdog is a safety net against connections that go quiet without ever
emitting a terminal event. It compares the time since the last observed
activity of the current session against the liveness timeout and, when the
timeout is exceeded, forces the controller to replace the session.

Replacing a session stamps the liveness timestamp, so a single stale period
leads to exactly one replacement per watchdog tick.
"""

from __future__ import annotations

from enum import Enum

import structlog
from pydantic import BaseModel, Field

from afkwarden.config import SupervisorConfig
from afkwarden.supervisor.controller import SessionLifecycleController
from afkwarden.supervisor.timers import PeriodicTask

logger = structlog.get_logger(__name__)


class WatchdogActionType(str, Enum):
    """Outcome of one watchdog check."""

    NONE = "none"
    HELD = "held"
    RECONNECT = "reconnect"


class WatchdogAction(BaseModel):
    """Record of one watchdog check.

    Attributes:
        action: What the watchdog did
        idle_seconds: Seconds since the last observed activity
        threshold_seconds: Configured liveness timeout
        identity: Identity of the session that replaced the stale one
    """

    action: WatchdogActionType = Field(description="Action type")
    idle_seconds: float = Field(description="Seconds idle")
    threshold_seconds: float = Field(description="Liveness timeout")
    identity: str | None = Field(default=None, description="Replacement identity")


class LivenessWatchdog:
    """Polls liveness and forces recovery of silent sessions."""

    def __init__(self, config: SupervisorConfig, controller: SessionLifecycleController):
        """Initialize liveness watchdog.

        Args:
            config: Supervisor configuration with interval and timeout
            controller: Controller owning the current session
        """
        self.config = config
        self.controller = controller
        self._task = PeriodicTask("liveness-watchdog", config.watchdog_interval_seconds, self.check)
        self._logger = structlog.get_logger(__name__)

    def idle_seconds(self) -> float:
        """Seconds since the current session last showed activity."""
        return self.controller.clock() - self.controller.state.last_activity_at

    def check(self) -> WatchdogAction:
        """Run one liveness check.

        Returns:
            WatchdogAction describing what happened
        """
        idle = self.idle_seconds()
        threshold = self.config.liveness_timeout_seconds

        if idle <= threshold:
            return WatchdogAction(
                action=WatchdogActionType.NONE, idle_seconds=idle, threshold_seconds=threshold
            )

        if self.controller.yielding:
            return WatchdogAction(
                action=WatchdogActionType.HELD, idle_seconds=idle, threshold_seconds=threshold
            )

        self._logger.warning(
            f"Watchdog: no activity for {idle:.0f}s, forcing reconnect.",
            idle_seconds=round(idle, 1),
            threshold=threshold,
        )
        handle = self.controller.ensure_session(force=True, reason="liveness timeout")
        return WatchdogAction(
            action=WatchdogActionType.RECONNECT,
            idle_seconds=idle,
            threshold_seconds=threshold,
            identity=handle.identity if handle is not None else None,
        )

    async def start(self) -> None:
        """Start the watchdog loop."""
        await self._task.start()
        self._logger.info(
            "watchdog_started",
            check_interval=self.config.watchdog_interval_seconds,
            liveness_timeout=self.config.liveness_timeout_seconds,
        )

    async def stop(self) -> None:
        """Stop the watchdog loop."""
        await self._task.stop()
