"""Presence monitor: automation vacates whenever a human is present.

On every tick the monitor reads the roster of the current session (and of the
outgoing one during a rotation overlap), drops the supervisor's own
occupants and anyone flagged as automated, and counts what is left. A non-zero
count retires every automated session at once (a graceful yield, not a
failure).
With nobody around and the session not in the play state, the controller is
asked to ensure a session, which heals connections that died silently.
"""

from __future__ import annotations

import structlog

from afkwarden.config import SupervisorConfig
from afkwarden.supervisor.controller import SessionLifecycleController
from afkwarden.supervisor.timers import PeriodicTask

logger = structlog.get_logger(__name__)


class PresenceMonitor:
    """Polls the occupant roster of the current session."""

    def __init__(self, config: SupervisorConfig, controller: SessionLifecycleController):
        """Initialize presence monitor.

        Args:
            config: Supervisor configuration with the poll interval
            controller: Controller owning the current session
        """
        self.config = config
        self.controller = controller
        self.last_human_count = 0
        self._task = PeriodicTask("presence-monitor", config.presence_interval_seconds, self.check)
        self._logger = structlog.get_logger(__name__)

    def check(self) -> int:
        """Run one presence check.

        During a rotation overlap the outgoing handle's roster is read too,
        and the supervisor's own identities are never counted as humans.

        Returns:
            Number of genuine human occupants seen (0 without a session)
        """
        handles = [
            h
            for h in (self.controller.current, self.controller.state.outgoing)
            if h is not None and h.client is not None
        ]
        if not handles:
            return 0

        own_identities = {h.identity for h in handles}
        humans: set[str] = set()
        rosters_read = 0
        for handle in handles:
            try:
                humans.update(handle.human_occupants())
            except Exception as e:
                self._logger.warning("roster_unavailable", identity=handle.identity, error=str(e))
                continue
            rosters_read += 1
        if not rosters_read:
            return 0
        humans -= own_identities

        self.last_human_count = len(humans)

        current = self.controller.current
        if humans:
            self.controller.yield_to_humans(sorted(humans))
        elif current is not None and current.client is not None and not current.is_playing():
            self._logger.debug(
                "No real players. Ensuring session is connected.",
                identity=current.identity,
                state=current.state.value,
            )
            self.controller.ensure_session(reason="no humans, session not in play")

        return len(humans)

    async def start(self) -> None:
        """Start the presence loop."""
        await self._task.start()
        self._logger.info(
            "presence_monitor_started", check_interval=self.config.presence_interval_seconds
        )

    async def stop(self) -> None:
        """Stop the presence loop."""
        await self._task.stop()
