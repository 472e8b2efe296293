"""Game client collaborator interface for afkwarden.

This module provides a Protocol-based abstraction over the game protocol
client (handshake, packet parsing, movement and chat primitives). The
supervisor never interprets game semantics; it only consumes the events a
client emits and the occupant roster it exposes.

A concrete client is supplied by a factory referenced from configuration as
``"package.module:callable"``. The factory receives ConnectOptions and returns
an object satisfying GameClient, or raises if the connection cannot be set up.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from afkwarden.supervisor.state_machine import SessionEvent

    EventListener = Callable[[SessionEvent, Any], None]

# Connection state reported by clients once the occupant is in the world
PLAY_STATE = "play"


@dataclass(frozen=True)
class Occupant:
    """One entry of the server's occupant roster.

    Attributes:
        name: Display name
        is_automated: Whether the server flags this occupant as automated
    """

    name: str
    is_automated: bool = False


@dataclass(frozen=True)
class ConnectOptions:
    """Parameters for opening one game connection.

    Attributes:
        host: Game server host
        port: Game server port
        username: Identity to connect under
    """

    host: str
    port: int
    username: str


@runtime_checkable
class GameClient(Protocol):
    """Protocol defining the interface of one game connection.

    Events are delivered to listeners on the event loop in the order the
    transport produced them. Detail payloads: the kick reason for KICKED,
    the exception for ERROR, the world time-of-day for TIME.
    """

    @property
    def username(self) -> str:
        """Identity the client is connected under."""
        ...

    @property
    def occupants(self) -> Mapping[str, Occupant]:
        """Current roster keyed by display name, including this client."""
        ...

    @property
    def connection_state(self) -> str | None:
        """Best-effort protocol state ("play" once in game), None if unknown."""
        ...

    def add_listener(self, listener: EventListener) -> None:
        """Register a callback receiving (event, detail) for every event."""
        ...

    def quit(self, reason: str = "") -> None:
        """Leave the server and release the connection. Idempotent."""
        ...

    def chat(self, message: str) -> None:
        """Send a chat line or command."""
        ...

    def respawn(self) -> None:
        """Respawn after death."""
        ...


ClientFactory = Callable[[ConnectOptions], GameClient]


def load_client_factory(path: str) -> ClientFactory:
    """Resolve a ``"module:callable"`` import path to a client factory.

    Args:
        path: Import path such as ``"mygame.client:connect"``

    Returns:
        The referenced callable

    Raises:
        ValueError: If the path is malformed or does not name a callable
        ImportError: If the module cannot be imported
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Client factory must look like 'module:callable', got {path!r}")

    module = importlib.import_module(module_name)
    factory = module
    for part in attr.split("."):
        try:
            factory = getattr(factory, part)
        except AttributeError:
            raise ValueError(f"{module_name} has no attribute {attr!r}") from None

    if not callable(factory):
        raise ValueError(f"Client factory {path!r} is not callable")
    return factory  # type: ignore[return-value]
