"""Session lifecycle controller for the afkwarden supervisor.

The controller is the only component allowed to create or terminate session
handles. It owns ``SupervisorState.current``, reacts to events from the game
client through the pure state machine, and schedules reconnect attempts.

Ownership transfer is ordered so that ``current`` never points to a handle
that has already been told to quit: the reference is cleared first, then the
old connection is closed, then the new handle is installed.
"""

from __future__ import annotations

import functools
import random
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import structlog

from afkwarden.client import ClientFactory, ConnectOptions
from afkwarden.config import ServerConfig, SupervisorConfig
from afkwarden.identity import generate_identity
from afkwarden.supervisor.backoff import FailureBackoffTracker
from afkwarden.supervisor.errors import ConnectFailure, SessionFailure, failure_for
from afkwarden.supervisor.session import SessionHandle, SupervisorState
from afkwarden.supervisor.state_machine import (
    ACTIVITY_EVENTS,
    Effect,
    SessionEvent,
    SessionState,
    transition,
)
from afkwarden.supervisor.timers import CallLater, Timer

if TYPE_CHECKING:
    from afkwarden.behaviors import SessionBehavior

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


class SessionLifecycleController:
    """Creates, replaces and retires occupant sessions.

    Attributes:
        server: Game server settings (host, port, identity base)
        config: Supervisor timings and thresholds
        state: Shared supervisor state
        tracker: Consecutive failure tracker
    """

    def __init__(
        self,
        server: ServerConfig,
        config: SupervisorConfig,
        client_factory: ClientFactory,
        state: SupervisorState | None = None,
        tracker: FailureBackoffTracker | None = None,
        behaviors: Sequence[SessionBehavior] = (),
        clock: Clock = time.time,
        call_later: CallLater | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize the controller.

        Args:
            server: Game server settings
            config: Supervisor configuration
            client_factory: Opens one game connection per call
            state: Shared state (a fresh one is created if omitted)
            tracker: Failure tracker bound to the same state
            behaviors: Capabilities invoked on active sessions
            clock: Wall-clock source in seconds
            call_later: Scheduling function for the reconnect timer
            rng: Random source for identities
        """
        self.server = server
        self.config = config
        self.client_factory = client_factory
        self.state = state if state is not None else SupervisorState()
        self.tracker = tracker or FailureBackoffTracker(config, self.state)
        self.behaviors = list(behaviors)
        self.clock = clock
        self._rng = rng
        self._reconnect_timer = Timer("reconnect", call_later)
        self._logger = structlog.get_logger(__name__)
        self.state.last_activity_at = clock()

    @property
    def current(self) -> SessionHandle | None:
        return self.state.current

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer.pending

    @property
    def yielding(self) -> bool:
        """Whether a presence yield hold is in effect."""
        until = self.state.yield_until
        return until is not None and self.clock() < until

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def ensure_session(self, force: bool = False, reason: str = "ensure") -> SessionHandle | None:
        """Make sure a healthy session exists, replacing the current one if needed.

        Calling this while a healthy Active session exists is a no-op. A
        Connecting session younger than the connect grace also counts as
        healthy. ``force`` replaces the current session regardless.

        Args:
            force: Replace even a healthy session (liveness watchdog)
            reason: Why the session is being ensured, for the log

        Returns:
            The current handle afterwards, or None if creation failed or a
            presence yield hold is in effect
        """
        if self.yielding:
            self._logger.debug("ensure_session_held", reason=reason)
            return self.state.current
        if self.state.yield_until is not None:
            self.state.yield_until = None
            self._logger.info("Presence hold expired. Rejoining.", reason=reason)

        current = self.state.current
        if not force and current is not None and self._is_healthy(current):
            return current

        return self._replace(reason)

    def retire_current(self, reason: str) -> SessionHandle | None:
        """Gracefully close the current session and clear the reference.

        Explicit retirement is not counted as a failure and does not schedule
        a reconnect.

        Args:
            reason: Why the session is retired, for the log

        Returns:
            The retired handle, or None if there was no current session
        """
        handle = self.state.current
        if handle is None:
            return None
        self.state.current = None
        self._retire(handle, reason)
        return handle

    def yield_to_humans(self, names: Sequence[str]) -> SessionHandle | None:
        """Vacate the server because genuine humans are present.

        Starts the presence yield hold, during which automatic rejoining is
        suspended. An outgoing rotation handle leaves together with the
        current one.

        Args:
            names: Human occupant names that triggered the yield

        Returns:
            The retired current handle, if any
        """
        self.state.yield_until = self.clock() + self.config.presence_yield_seconds
        self._reconnect_timer.cancel()
        self._logger.info(
            f"Real player detected ({', '.join(names)}). Disconnecting.",
            humans=len(names),
        )
        if self.state.outgoing is not None:
            self.complete_rotation(self.state.outgoing)
        return self.retire_current("human occupant present")

    def begin_rotation(self) -> SessionHandle | None:
        """Start an identity rotation with an overlap window.

        Opens a new session under a fresh identity while the current one stays
        connected as the outgoing handle.

        Returns:
            The outgoing handle to retire later, or None if nothing was rotated
        """
        old = self.state.current
        if old is None or self.yielding:
            self._logger.info("Skipping identity rotation: no session to rotate")
            return None

        if self.state.outgoing is not None:
            self.complete_rotation(self.state.outgoing)

        self._reconnect_timer.cancel()
        self.state.outgoing = old
        self.state.current = None
        self.state.last_rotation_at = self.clock()
        self._logger.info(f"Rotating identity (outgoing {old.identity})...")

        new = self._open_session()
        if new is None:
            if self.state.outgoing is old:
                self.state.outgoing = None
                self.state.current = old
            self._logger.warning(
                f"Identity rotation aborted, keeping {old.identity}",
                consecutive_failures=self.state.consecutive_failures,
            )
            return None
        return old

    def complete_rotation(self, outgoing: SessionHandle) -> bool:
        """Retire the outgoing handle of a rotation.

        Args:
            outgoing: Handle returned by begin_rotation

        Returns:
            True if the handle was still outgoing and has been retired
        """
        if self.state.outgoing is not outgoing:
            return False
        self.state.outgoing = None
        self._retire(outgoing, "rotation handoff complete")
        return True

    def handle_event(self, handle: SessionHandle, event: SessionEvent, detail: Any = None) -> None:
        """Entry point for events emitted by a handle's game client.

        Events from handles that are neither current nor outgoing are ignored.

        Args:
            handle: Handle whose client emitted the event
            event: Event type
            detail: Event payload (kick reason, error, time of day)
        """
        if handle is not self.state.current and handle is not self.state.outgoing:
            self._logger.debug(
                "stale_session_event", identity=handle.identity, session_event=event.value
            )
            return
        self._apply(handle, event, detail)

    def shutdown(self) -> None:
        """Cancel the reconnect timer and retire every live handle."""
        self._reconnect_timer.cancel()
        if self.state.outgoing is not None:
            outgoing, self.state.outgoing = self.state.outgoing, None
            self._retire(outgoing, "supervisor shutdown")
        self.retire_current("supervisor shutdown")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_healthy(self, handle: SessionHandle) -> bool:
        if handle.is_playing():
            return True
        if handle.state is SessionState.CONNECTING:
            return self.clock() - handle.created_at < self.config.connect_grace_seconds
        return False

    def _replace(self, reason: str) -> SessionHandle | None:
        self._reconnect_timer.cancel()
        old = self.state.current
        if old is not None:
            self.state.current = None
            self._retire(old, f"replaced ({reason})")
        return self._open_session()

    def _open_session(self) -> SessionHandle | None:
        now = self.clock()
        identity = generate_identity(self.server.base_name, self._rng)
        handle = SessionHandle(identity=identity, created_at=now)
        self.state.current = handle
        self.state.last_activity_at = now
        self.state.sessions_created += 1

        options = ConnectOptions(host=self.server.host, port=self.server.port, username=identity)
        try:
            handle.client = self.client_factory(options)
            handle.client.add_listener(functools.partial(self.handle_event, handle))
        except Exception as e:
            # The terminal transition closes a client that was already created
            failure = e if isinstance(e, ConnectFailure) else ConnectFailure(e, identity=identity)
            self._apply(handle, SessionEvent.CONNECT_FAILED, failure)
            return None

        self._logger.info(f"Session created with identity: {identity}", identity=identity)
        return handle

    def _retire(self, handle: SessionHandle, reason: str) -> None:
        self._logger.info(f"Retiring session {handle.identity}: {reason}", identity=handle.identity)
        self._apply(handle, SessionEvent.RETIRED, reason)

    def _schedule_reconnect(self, base_delay: float, reason: str) -> None:
        delay = self.tracker.delay_for(base_delay)
        self._reconnect_timer.schedule(
            delay, lambda: self.ensure_session(reason=reason)
        )
        self._logger.debug("reconnect_scheduled", delay=delay, reason=reason)

    def _apply(self, handle: SessionHandle, event: SessionEvent, detail: Any) -> None:
        previous = handle.state
        if previous is SessionState.TERMINATED:
            return
        result = transition(previous, event)

        handle.state = result.state
        is_current = handle is self.state.current
        now = self.clock()
        self._log_event(handle, event, detail)

        for effect in result.effects:
            if effect is Effect.STAMP_ACTIVITY:
                handle.last_activity_at = now
                if is_current:
                    self.state.last_activity_at = now
            elif not is_current:
                # Outgoing rotation handles never count or reconnect
                continue
            elif effect is Effect.RESET_FAILURES:
                self.tracker.reset()
            elif effect is Effect.RECORD_FAILURE:
                self.tracker.record_failure()
            elif effect is Effect.SCHEDULE_RECONNECT:
                self._schedule_reconnect(self.config.reconnect_delay_seconds, event.value)
            elif effect is Effect.SCHEDULE_RETRY:
                self._schedule_reconnect(self.config.retry_delay_seconds, event.value)

        if result.terminal:
            handle.terminated_at = now
            if event is not SessionEvent.RETIRED:
                handle.failure = failure_for(event, detail, identity=handle.identity)
            if handle is self.state.current:
                self.state.current = None
            elif handle is self.state.outgoing:
                self.state.outgoing = None
            handle.close(str(detail) if detail is not None else event.value)
            return

        if previous is SessionState.CONNECTING and result.state is SessionState.ACTIVE:
            self._run_behaviors(handle, "on_active")
        if event is SessionEvent.DEATH and handle.client is not None:
            self._respawn(handle)
        if event in ACTIVITY_EVENTS and handle.state is SessionState.ACTIVE:
            self._run_behaviors(handle, "on_event", event, detail)

    def _log_event(self, handle: SessionHandle, event: SessionEvent, detail: Any) -> None:
        identity = handle.identity
        if event is SessionEvent.LOGIN:
            self._logger.info(f"Logged in as {identity}", identity=identity)
        elif event is SessionEvent.SPAWN:
            self._logger.info("Spawned in the world.", identity=identity)
        elif event is SessionEvent.DEATH:
            self._logger.info("Died, respawning.", identity=identity)
        elif event is SessionEvent.KICKED:
            self._logger.warning(f"Kicked: {detail}", identity=identity)
        elif event is SessionEvent.DISCONNECTED:
            self._logger.warning("Disconnected. Reconnecting...", identity=identity)
        elif event is SessionEvent.ERROR:
            self._logger.error(f"Error: {detail}", identity=identity)
        elif event is SessionEvent.CONNECT_FAILED:
            cause = detail.detail if isinstance(detail, SessionFailure) else detail
            self._logger.error(f"Failed to create session: {cause}", identity=identity)

    def _respawn(self, handle: SessionHandle) -> None:
        try:
            handle.client.respawn()  # type: ignore[union-attr]
        except Exception as e:
            self._logger.warning("respawn_failed", identity=handle.identity, error=str(e))

    def _run_behaviors(self, handle: SessionHandle, hook: str, *args: Any) -> None:
        for behavior in self.behaviors:
            try:
                getattr(behavior, hook)(handle, *args)
            except Exception as e:
                self._logger.warning(
                    "behavior_failed",
                    behavior=type(behavior).__name__,
                    hook=hook,
                    identity=handle.identity,
                    error=str(e),
                )
