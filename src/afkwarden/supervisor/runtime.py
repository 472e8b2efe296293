"""Supervisor runtime wiring.

The Supervisor builds one SupervisorState and hands it to every component,
then runs them on the event loop: the liveness watchdog, the presence
monitor, the heartbeat, and the identity rotation scheduler. All of them run
cooperatively on one loop, so the shared state needs no locking.
"""

from __future__ import annotations

import random
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, Field

from afkwarden import behaviors as session_behaviors
from afkwarden.client import ClientFactory
from afkwarden.config import ServerConfig, SupervisorConfig
from afkwarden.supervisor.backoff import FailureBackoffTracker
from afkwarden.supervisor.controller import Clock, SessionLifecycleController
from afkwarden.supervisor.heartbeat import HeartbeatLogger
from afkwarden.supervisor.presence import PresenceMonitor
from afkwarden.supervisor.rotation import IdentityRotationScheduler
from afkwarden.supervisor.session import SupervisorState
from afkwarden.supervisor.timers import CallLater
from afkwarden.supervisor.watchdog import LivenessWatchdog

if TYPE_CHECKING:
    from afkwarden.behaviors import SessionBehavior

logger = structlog.get_logger(__name__)


class SupervisorStatus(BaseModel):
    """Point-in-time view of the supervisor.

    Attributes:
        running: Whether the supervisor loops are running
        identity: Identity of the current session
        state: Lifecycle state of the current session
        consecutive_failures: Failed sessions since the last Active transition
        alerting: Whether the repeated-failure threshold is reached
        rotating: Whether a rotation overlap window is open
        yielding: Whether a presence yield hold is in effect
        sessions_created: Total sessions created since start
        last_activity_at: ISO timestamp of the last session activity
        last_rotation_at: ISO timestamp of the last rotation
    """

    running: bool
    identity: str | None = None
    state: str | None = None
    consecutive_failures: int = 0
    alerting: bool = False
    rotating: bool = False
    yielding: bool = False
    sessions_created: int = 0
    last_activity_at: str | None = Field(default=None)
    last_rotation_at: str | None = Field(default=None)


def _iso(timestamp: float | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class Supervisor:
    """Owns the supervisor components and their lifecycle."""

    def __init__(
        self,
        server: ServerConfig,
        config: SupervisorConfig,
        client_factory: ClientFactory,
        behaviors: Sequence[SessionBehavior] | None = None,
        clock: Clock = time.time,
        call_later: CallLater | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize supervisor.

        Args:
            server: Game server settings
            config: Supervisor configuration
            client_factory: Opens one game connection per call
            behaviors: Session behaviours (defaults from server settings)
            clock: Wall-clock source in seconds
            call_later: Scheduling function for one-shot timers
            rng: Random source for identities and rotation intervals
        """
        self.config = config
        self.state = SupervisorState()
        self.tracker = FailureBackoffTracker(config, self.state)
        self.controller = SessionLifecycleController(
            server=server,
            config=config,
            client_factory=client_factory,
            state=self.state,
            tracker=self.tracker,
            behaviors=(
                session_behaviors.default_behaviors(server) if behaviors is None else behaviors
            ),
            clock=clock,
            call_later=call_later,
            rng=rng,
        )
        self.watchdog = LivenessWatchdog(config, self.controller)
        self.presence = PresenceMonitor(config, self.controller)
        self.heartbeat = HeartbeatLogger(config, self.controller)
        self.rotation = IdentityRotationScheduler(config, self.controller, call_later, rng)
        self._running = False
        self._logger = structlog.get_logger(__name__)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Open the first session and start every periodic component."""
        if self._running:
            self._logger.warning("supervisor_already_running")
            return

        self._running = True
        self.controller.ensure_session(reason="startup")
        await self.presence.start()
        await self.watchdog.start()
        await self.heartbeat.start()
        self.rotation.start()
        self._logger.info("supervisor_started", base_name=self.controller.server.base_name)

    async def stop(self) -> None:
        """Stop every component and retire live sessions."""
        if not self._running:
            return

        self._running = False
        self.rotation.stop()
        await self.heartbeat.stop()
        await self.watchdog.stop()
        await self.presence.stop()
        self.controller.shutdown()
        self._logger.info("supervisor_stopped")

    def snapshot(self) -> SupervisorStatus:
        """Build a status snapshot for the web surface."""
        current = self.state.current
        return SupervisorStatus(
            running=self._running,
            identity=current.identity if current is not None else None,
            state=current.state.value if current is not None else None,
            consecutive_failures=self.state.consecutive_failures,
            alerting=self.tracker.alerting,
            rotating=self.state.in_overlap,
            yielding=self.controller.yielding,
            sessions_created=self.state.sessions_created,
            last_activity_at=_iso(self.state.last_activity_at),
            last_rotation_at=_iso(self.state.last_rotation_at),
        )
