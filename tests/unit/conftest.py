"""Shared fakes for supervisor unit tests.

The supervisor only talks to the outside world through three seams: the
client factory, the clock and the call_later scheduler. These fakes replace
all three so lifecycle scenarios run synchronously and deterministically.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Any

import pytest
import structlog

from afkwarden.client import ConnectOptions, Occupant
from afkwarden.config import ServerConfig, SupervisorConfig
from afkwarden.supervisor.controller import SessionLifecycleController
from afkwarden.supervisor.state_machine import SessionEvent


class FakeClient:
    """In-memory GameClient recording every call made on it."""

    def __init__(self, options: ConnectOptions):
        self.options = options
        self.username = options.username
        self.occupants: dict[str, Occupant] = {options.username: Occupant(options.username)}
        self.connection_state: str | None = "play"
        self.listeners: list[Callable[[SessionEvent, Any], None]] = []
        self.quit_reasons: list[str] = []
        self.chats: list[str] = []
        self.respawns = 0
        self.on_quit: Callable[[], None] | None = None

    def add_listener(self, listener: Callable[[SessionEvent, Any], None]) -> None:
        self.listeners.append(listener)

    def emit(self, event: SessionEvent, detail: Any = None) -> None:
        for listener in list(self.listeners):
            listener(event, detail)

    def quit(self, reason: str = "") -> None:
        if self.on_quit is not None:
            self.on_quit()
        self.quit_reasons.append(reason)

    def chat(self, message: str) -> None:
        self.chats.append(message)

    def respawn(self) -> None:
        self.respawns += 1

    @property
    def quit_called(self) -> bool:
        return bool(self.quit_reasons)


class FakeClientFactory:
    """Client factory that hands out FakeClients or raises on demand."""

    def __init__(self) -> None:
        self.clients: list[FakeClient] = []
        self.calls: list[ConnectOptions] = []
        self.failures_remaining = 0
        self.always_fail = False

    def __call__(self, options: ConnectOptions) -> FakeClient:
        self.calls.append(options)
        if self.always_fail or self.failures_remaining > 0:
            self.failures_remaining = max(self.failures_remaining - 1, 0)
            raise ConnectionRefusedError("connection refused")
        client = FakeClient(options)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeClient:
        return self.clients[-1]


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """call_later replacement; callbacks fire only when a test says so."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    @property
    def delays(self) -> list[float]:
        return [h.delay for h in self.pending]

    def fire_next(self) -> FakeHandle:
        """Fire the pending callback with the shortest delay."""
        handle = min(self.pending, key=lambda h: h.delay)
        self.handles.remove(handle)
        handle.callback()
        return handle


@pytest.fixture(autouse=True)
def reset_structlog() -> None:
    """Start every test from structlog defaults so capture_logs works."""
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(host="play.example.com", name="afkbot")


@pytest.fixture
def supervisor_config() -> SupervisorConfig:
    return SupervisorConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def controller(
    server_config: ServerConfig,
    supervisor_config: SupervisorConfig,
    factory: FakeClientFactory,
    clock: FakeClock,
    scheduler: FakeScheduler,
) -> SessionLifecycleController:
    """Controller wired to the fakes, without behaviours."""
    return SessionLifecycleController(
        server=server_config,
        config=supervisor_config,
        client_factory=factory,
        clock=clock,
        call_later=scheduler.call_later,
        rng=random.Random(1234),
    )


def activate(client: FakeClient) -> None:
    """Drive a fresh session to Active the way a real login does."""
    client.emit(SessionEvent.LOGIN)
    client.emit(SessionEvent.SPAWN)
