"""In-session behaviours invoked by the lifecycle controller.

Behaviours are capabilities, not lifecycle logic: the controller calls
``on_active`` once a session is confirmed and ``on_event`` for every
activity event afterwards. A failing behaviour is logged by the controller
and never affects the session state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

from afkwarden.supervisor.state_machine import SessionEvent

if TYPE_CHECKING:
    from afkwarden.config import ServerConfig
    from afkwarden.supervisor.session import SessionHandle

logger = structlog.get_logger(__name__)

# World time-of-day from which the night is skipped
NIGHT_START_TICKS = 13000


class SessionBehavior(Protocol):
    """Protocol for behaviours attached to active sessions."""

    def on_active(self, handle: SessionHandle) -> None: ...

    def on_event(self, handle: SessionHandle, event: SessionEvent, detail: Any) -> None: ...


class Greeter:
    """Say a greeting once the session is confirmed."""

    def __init__(self, message: str = "hello"):
        self.message = message

    def on_active(self, handle: SessionHandle) -> None:
        if handle.client is not None:
            handle.client.chat(self.message)

    def on_event(self, handle: SessionHandle, event: SessionEvent, detail: Any) -> None:
        return None


class NightSkip:
    """Set the world time to day whenever night falls.

    Attributes:
        command: Chat command that sets the time to day
    """

    command = "/time set day"

    def on_active(self, handle: SessionHandle) -> None:
        return None

    def on_event(self, handle: SessionHandle, event: SessionEvent, detail: Any) -> None:
        if event is not SessionEvent.TIME or handle.client is None:
            return
        try:
            time_of_day = int(detail)
        except (TypeError, ValueError):
            return
        if time_of_day >= NIGHT_START_TICKS:
            logger.debug("night_skip", identity=handle.identity, time_of_day=time_of_day)
            handle.client.chat(self.command)


def default_behaviors(server: ServerConfig) -> list[SessionBehavior]:
    """Build the behaviours enabled by the server configuration."""
    behaviors: list[SessionBehavior] = [Greeter()]
    if server.auto_night_skip:
        behaviors.append(NightSkip())
    return behaviors
