"""Session state machine for the afkwarden supervisor.

This module implements the occupant session lifecycle as a pure transition
function. Given the current state of a session handle and an event observed
on it, ``transition`` returns the next state together with the effects the
controller must apply (stamp liveness, count a failure, schedule a retry).
Nothing here touches a connection, a timer or a logger, so the lifecycle
rules can be tested without a live game server.

State transitions:
    CONNECTING → ACTIVE → TERMINATED
         ↓                    ↑
         └────────────────────┘

TERMINATED is absorbing: late events from a retired connection are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    """Lifecycle states of a session handle."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    TERMINATED = "terminated"


class SessionEvent(str, Enum):
    """Events observed on a session.

    The first group is emitted by the game client; CONNECT_FAILED and RETIRED
    are raised by the controller itself.
    """

    LOGIN = "login"
    SPAWN = "spawn"
    TIME = "time"
    CHAT = "chat"
    MOVE = "move"
    DEATH = "death"
    KICKED = "kicked"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    CONNECT_FAILED = "connect_failed"
    RETIRED = "retired"


class Effect(str, Enum):
    """Side effects requested by a transition."""

    STAMP_ACTIVITY = "stamp_activity"
    RESET_FAILURES = "reset_failures"
    RECORD_FAILURE = "record_failure"
    SCHEDULE_RECONNECT = "schedule_reconnect"  # reactive failure, short delay
    SCHEDULE_RETRY = "schedule_retry"  # failed creation, longer delay


@dataclass(frozen=True)
class Transition:
    """Result of applying an event to a session state.

    Attributes:
        state: State after the event
        effects: Effects the controller must apply, in order
    """

    state: SessionState
    effects: tuple[Effect, ...] = ()

    @property
    def terminal(self) -> bool:
        """Whether this transition leaves the session terminated."""
        return self.state is SessionState.TERMINATED


# Authoritative state graph
VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.CONNECTING: {SessionState.ACTIVE, SessionState.TERMINATED},
    SessionState.ACTIVE: {SessionState.TERMINATED},
    SessionState.TERMINATED: set(),
}

ACTIVITY_EVENTS = frozenset(
    {
        SessionEvent.LOGIN,
        SessionEvent.SPAWN,
        SessionEvent.TIME,
        SessionEvent.CHAT,
        SessionEvent.MOVE,
        SessionEvent.DEATH,
    }
)

FAILURE_EVENTS = frozenset(
    {SessionEvent.KICKED, SessionEvent.DISCONNECTED, SessionEvent.ERROR}
)

_CONFIRM = Transition(
    SessionState.ACTIVE, (Effect.RESET_FAILURES, Effect.STAMP_ACTIVITY)
)
_FAILED = Transition(
    SessionState.TERMINATED, (Effect.RECORD_FAILURE, Effect.SCHEDULE_RECONNECT)
)
_CREATION_FAILED = Transition(
    SessionState.TERMINATED, (Effect.RECORD_FAILURE, Effect.SCHEDULE_RETRY)
)
_RETIRED = Transition(SessionState.TERMINATED)


def validate_transition(current: SessionState, target: SessionState) -> bool:
    """Validate if a state change is allowed.

    Staying in the same state is always allowed.

    Args:
        current: Current session state.
        target: Target session state.

    Returns:
        True if the change is valid according to VALID_TRANSITIONS.
    """
    return current is target or target in VALID_TRANSITIONS.get(current, set())


def transition(state: SessionState, event: SessionEvent) -> Transition:
    """Apply an event to a session state.

    Args:
        state: Current state of the session handle.
        event: Event observed on the session.

    Returns:
        The resulting Transition. Unknown combinations leave the state
        unchanged with no effects.
    """
    if state is SessionState.TERMINATED:
        return Transition(state)

    if event is SessionEvent.RETIRED:
        return _RETIRED

    if event in FAILURE_EVENTS:
        return _FAILED

    if state is SessionState.CONNECTING:
        if event is SessionEvent.CONNECT_FAILED:
            return _CREATION_FAILED
        if event in (SessionEvent.LOGIN, SessionEvent.SPAWN):
            return _CONFIRM

    if event in ACTIVITY_EVENTS:
        return Transition(state, (Effect.STAMP_ACTIVITY,))

    return Transition(state)
