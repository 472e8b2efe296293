"""Identity rotation with an overlap window.

At a randomized interval the scheduler asks the controller to open a session
under a new identity while the old one stays connected, then retires the old
handle after a short randomized handoff delay. There is always at least one
Active or Connecting handle while a rotation is in progress.
"""

from __future__ import annotations

import random

import structlog

from afkwarden.config import SupervisorConfig
from afkwarden.supervisor.controller import SessionLifecycleController
from afkwarden.supervisor.session import SessionHandle
from afkwarden.supervisor.timers import CallLater, Timer

logger = structlog.get_logger(__name__)


class IdentityRotationScheduler:
    """Periodically replaces the occupant identity without leaving a gap."""

    def __init__(
        self,
        config: SupervisorConfig,
        controller: SessionLifecycleController,
        call_later: CallLater | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize rotation scheduler.

        Args:
            config: Supervisor configuration with rotation and handoff ranges
            controller: Controller owning the sessions
            call_later: Scheduling function for both timers
            rng: Random source for intervals
        """
        self.config = config
        self.controller = controller
        self._rng = rng or random.Random()
        self._rotation_timer = Timer("rotation", call_later)
        self._handoff_timer = Timer("rotation-handoff", call_later)
        self._logger = structlog.get_logger(__name__)

    @property
    def scheduled(self) -> bool:
        return self._rotation_timer.pending

    def next_interval(self) -> float:
        """Seconds until the next rotation, uniform in the configured range."""
        return 60.0 * self._rng.uniform(
            self.config.rotation_min_minutes, self.config.rotation_max_minutes
        )

    def handoff_delay(self) -> float:
        """Seconds the outgoing handle stays connected after a rotation."""
        return self._rng.uniform(self.config.handoff_min_seconds, self.config.handoff_max_seconds)

    def schedule_next(self) -> float:
        """(Re)arm the rotation timer.

        Returns:
            Delay until the rotation fires
        """
        delay = self.next_interval()
        self._rotation_timer.schedule(delay, self.rotate)
        self._logger.debug("rotation_scheduled", delay_minutes=round(delay / 60.0, 1))
        return delay

    def rotate(self) -> SessionHandle | None:
        """Rotate now and reschedule.

        Returns:
            The outgoing handle awaiting retirement, if a rotation started
        """
        outgoing = self.controller.begin_rotation()
        if outgoing is not None:
            delay = self.handoff_delay()
            self._handoff_timer.schedule(delay, lambda: self.controller.complete_rotation(outgoing))
            self._logger.info(
                f"Handing off from {outgoing.identity} in {delay:.1f}s",
                identity=outgoing.identity,
            )
        self.schedule_next()
        return outgoing

    def start(self) -> None:
        """Arm the first rotation."""
        self.schedule_next()

    def stop(self) -> None:
        """Cancel the pending rotation and handoff."""
        self._rotation_timer.cancel()
        self._handoff_timer.cancel()
