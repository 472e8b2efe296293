"""Periodic heartbeat log entry proving the process is alive."""

from __future__ import annotations

from datetime import datetime

import structlog

from afkwarden.config import SupervisorConfig
from afkwarden.supervisor.controller import SessionLifecycleController
from afkwarden.supervisor.timers import PeriodicTask

logger = structlog.get_logger(__name__)


class HeartbeatLogger:
    """Logs process liveness and the last session activity once per interval."""

    def __init__(self, config: SupervisorConfig, controller: SessionLifecycleController):
        self.config = config
        self.controller = controller
        self._task = PeriodicTask("heartbeat", config.heartbeat_interval_seconds, self.beat)
        self._logger = structlog.get_logger(__name__)

    def beat(self) -> str:
        """Emit one heartbeat entry and return its message."""
        state = self.controller.state
        last_activity = datetime.fromtimestamp(state.last_activity_at).strftime("%H:%M:%S")
        message = f"Heartbeat: process is alive. Last activity: {last_activity}"
        self._logger.info(
            message,
            current=state.current.identity if state.current is not None else None,
            consecutive_failures=state.consecutive_failures,
        )
        return message

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()
