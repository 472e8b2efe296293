"""Session handles and process-wide supervisor state.

A SessionHandle is the passive record of one connection lifetime. Only the
SessionLifecycleController creates handles or changes their state; every
other component just reads them. SupervisorState is the single mutable
object shared by all supervisor components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from afkwarden.client import PLAY_STATE
from afkwarden.supervisor.state_machine import SessionState

if TYPE_CHECKING:
    from afkwarden.client import GameClient
    from afkwarden.supervisor.errors import SessionFailure

logger = structlog.get_logger(__name__)


@dataclass(eq=False)
class SessionHandle:
    """One connection attempt and its lifetime.

    Attributes:
        identity: Identity assigned at creation
        created_at: Clock reading at creation
        last_activity_at: Clock reading of the most recent event
        state: Current lifecycle state
        client: Game connection owned exclusively by this handle
        terminated_at: Clock reading when the handle was terminated
        failure: Failure that terminated the handle, None for explicit retirement
    """

    identity: str
    created_at: float
    last_activity_at: float = 0.0
    state: SessionState = SessionState.CONNECTING
    client: GameClient | None = None
    terminated_at: float | None = None
    failure: SessionFailure | None = None

    def __post_init__(self) -> None:
        if not self.last_activity_at:
            self.last_activity_at = self.created_at

    @property
    def terminated(self) -> bool:
        return self.state is SessionState.TERMINATED

    def is_playing(self) -> bool:
        """Whether the session is Active and the client reports the play state.

        Clients that cannot report their protocol state are trusted on the
        handle state alone.
        """
        if self.state is not SessionState.ACTIVE or self.client is None:
            return False
        try:
            connection_state = self.client.connection_state
        except Exception:
            return False
        return connection_state is None or connection_state == PLAY_STATE

    def human_occupants(self) -> list[str]:
        """Names of genuine human occupants visible to this session.

        Excludes the session's own identity and anyone flagged as automated.
        """
        if self.client is None:
            return []
        own_names = {self.identity, self.client.username}
        return sorted(
            name
            for name, occupant in self.client.occupants.items()
            if name not in own_names and not occupant.is_automated
        )

    def close(self, reason: str) -> None:
        """Release the connection. Never raises.

        Args:
            reason: Reason passed to the client's quit
        """
        client, self.client = self.client, None
        if client is None:
            return
        try:
            client.quit(reason)
        except Exception as e:
            logger.debug("session_quit_failed", identity=self.identity, error=str(e))


@dataclass
class SupervisorState:
    """Process-wide supervisor state, owned by the controller.

    Attributes:
        current: The current session handle (None only while reconnecting)
        outgoing: The previous handle during a rotation overlap window
        consecutive_failures: Failed sessions since the last Active transition
        last_rotation_at: Clock reading of the last identity rotation
        last_activity_at: Clock reading of the last event from the current session
        yield_until: Clock reading until which automatic rejoining is held
        sessions_created: Total handles created since start
    """

    current: SessionHandle | None = None
    outgoing: SessionHandle | None = None
    consecutive_failures: int = 0
    last_rotation_at: float | None = None
    last_activity_at: float = 0.0
    yield_until: float | None = None
    sessions_created: int = field(default=0)

    @property
    def in_overlap(self) -> bool:
        """Whether a rotation overlap window is open."""
        return self.outgoing is not None
