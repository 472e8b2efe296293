"""Failure taxonomy for occupant sessions.

Every failure is recoverable: it terminates the affected session handle and
leads to a retry under a new identity. None of them stops the supervisor.
"""

from __future__ import annotations

from typing import Any

from afkwarden.supervisor.state_machine import SessionEvent


class SessionFailure(Exception):
    """Base class for failures that terminate a session.

    Attributes:
        event: Session event that produced the failure
        detail: Reason or underlying error reported by the client
        identity: Identity of the affected session, if known
    """

    event: SessionEvent = SessionEvent.ERROR
    label: str = "Error"

    def __init__(self, detail: Any = None, identity: str | None = None):
        self.detail = detail
        self.identity = identity
        msg = self.label if detail is None else f"{self.label}: {detail}"
        super().__init__(msg)


class ConnectFailure(SessionFailure):
    """The session could not be established."""

    event = SessionEvent.CONNECT_FAILED
    label = "Failed to create session"


class RemoteTermination(SessionFailure):
    """The server removed the occupant (kick)."""

    event = SessionEvent.KICKED
    label = "Kicked"


class TransportLoss(SessionFailure):
    """The underlying connection was lost."""

    event = SessionEvent.DISCONNECTED
    label = "Disconnected"


class ProtocolError(SessionFailure):
    """The connection reported a runtime error."""

    event = SessionEvent.ERROR
    label = "Error"


_FAILURES_BY_EVENT: dict[SessionEvent, type[SessionFailure]] = {
    cls.event: cls for cls in (ConnectFailure, RemoteTermination, TransportLoss, ProtocolError)
}


def failure_for(
    event: SessionEvent, detail: Any = None, identity: str | None = None
) -> SessionFailure:
    """Build the failure matching a terminal session event.

    Args:
        event: Terminal event (KICKED, DISCONNECTED, ERROR or CONNECT_FAILED)
        detail: Reason or error attached to the event
        identity: Identity of the affected session

    Returns:
        SessionFailure subclass instance for the event

    Raises:
        ValueError: If the event is not a failure event
    """
    if isinstance(detail, SessionFailure):
        return detail
    try:
        cls = _FAILURES_BY_EVENT[event]
    except KeyError:
        raise ValueError(f"{event.value} is not a failure event") from None
    return cls(detail, identity=identity)
