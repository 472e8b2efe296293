"""Unit tests for the liveness watchdog and the presence monitor.

This module tests:
- LivenessWatchdog: idle detection and forced replacement
- PresenceMonitor: yielding to humans and healing silent sessions
"""

from __future__ import annotations

import asyncio

import pytest
from structlog.testing import capture_logs

from afkwarden.client import Occupant
from afkwarden.config import SupervisorConfig
from afkwarden.supervisor.controller import SessionLifecycleController
from afkwarden.supervisor.presence import PresenceMonitor
from afkwarden.supervisor.state_machine import SessionEvent, SessionState
from afkwarden.supervisor.watchdog import LivenessWatchdog, WatchdogActionType
from conftest import FakeClientFactory, FakeClock, activate


@pytest.fixture
def watchdog(
    supervisor_config: SupervisorConfig, controller: SessionLifecycleController
) -> LivenessWatchdog:
    return LivenessWatchdog(supervisor_config, controller)


@pytest.fixture
def presence(
    supervisor_config: SupervisorConfig, controller: SessionLifecycleController
) -> PresenceMonitor:
    return PresenceMonitor(supervisor_config, controller)


# =====================================================================
# LivenessWatchdog Tests
# =====================================================================


class TestLivenessWatchdog:
    """Test liveness checks."""

    def test_quiet_within_timeout(
        self,
        watchdog: LivenessWatchdog,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
        clock: FakeClock,
    ) -> None:
        """Silence shorter than the timeout is fine."""
        controller.ensure_session()
        activate(factory.last)
        clock.advance(9)

        action = watchdog.check()

        assert action.action is WatchdogActionType.NONE
        assert action.idle_seconds == pytest.approx(9)
        assert action.threshold_seconds == 10

    def test_silent_session_is_replaced(
        self,
        watchdog: LivenessWatchdog,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
        clock: FakeClock,
    ) -> None:
        """A healthy-looking but silent session is forced out."""
        old = controller.ensure_session()
        old_client = factory.last
        activate(old_client)
        clock.advance(12)

        with capture_logs() as logs:
            action = watchdog.check()

        assert action.action is WatchdogActionType.RECONNECT
        assert action.identity == controller.current.identity
        assert controller.current is not old
        assert old_client.quit_called
        assert "Watchdog: no activity for 12s, forcing reconnect." in [e["event"] for e in logs]

    def test_one_replacement_per_stale_period(
        self,
        watchdog: LivenessWatchdog,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
        clock: FakeClock,
    ) -> None:
        """Replacement stamps liveness, so the next tick does nothing."""
        controller.ensure_session()
        clock.advance(15)

        assert watchdog.check().action is WatchdogActionType.RECONNECT
        assert watchdog.check().action is WatchdogActionType.NONE
        assert len(factory.calls) == 2

    def test_activity_keeps_session_alive(
        self,
        watchdog: LivenessWatchdog,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
        clock: FakeClock,
    ) -> None:
        controller.ensure_session()
        activate(factory.last)

        for _ in range(5):
            clock.advance(8)
            factory.last.emit(SessionEvent.TIME, 1000)
            assert watchdog.check().action is WatchdogActionType.NONE

        assert len(factory.calls) == 1

    def test_recovers_when_no_session_exists(
        self,
        watchdog: LivenessWatchdog,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
        clock: FakeClock,
    ) -> None:
        """With no session and stale liveness, the watchdog creates one."""
        clock.advance(11)

        action = watchdog.check()

        assert action.action is WatchdogActionType.RECONNECT
        assert controller.current is not None
        assert len(factory.calls) == 1

    def test_held_during_presence_yield(
        self,
        watchdog: LivenessWatchdog,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
        clock: FakeClock,
    ) -> None:
        """The watchdog does not rejoin while yielding to humans."""
        controller.ensure_session()
        activate(factory.last)
        controller.yield_to_humans(["Steve"])
        clock.advance(15)

        assert watchdog.check().action is WatchdogActionType.HELD
        assert controller.current is None

        clock.advance(20)

        assert watchdog.check().action is WatchdogActionType.RECONNECT
        assert controller.current is not None

    @pytest.mark.asyncio
    async def test_start_stop(self, watchdog: LivenessWatchdog) -> None:
        await watchdog.start()
        assert watchdog._task.running

        await watchdog.stop()
        assert not watchdog._task.running


# =====================================================================
# PresenceMonitor Tests
# =====================================================================


class TestPresenceMonitor:
    """Test roster checks."""

    def test_no_session_does_nothing(
        self, presence: PresenceMonitor, factory: FakeClientFactory
    ) -> None:
        assert presence.check() == 0
        assert factory.calls == []

    def test_alone_and_playing(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        """Only the occupant itself online: nothing to do."""
        handle = controller.ensure_session()
        activate(factory.last)

        assert presence.check() == 0
        assert controller.current is handle

    def test_human_triggers_yield(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        """A human in the roster retires the session gracefully."""
        handle = controller.ensure_session()
        client = factory.last
        activate(client)
        client.occupants["Steve"] = Occupant("Steve")

        with capture_logs() as logs:
            assert presence.check() == 1

        assert controller.current is None
        assert handle.state is SessionState.TERMINATED
        assert handle.failure is None
        assert client.quit_called
        assert controller.state.consecutive_failures == 0
        assert not controller.reconnect_pending
        assert presence.last_human_count == 1
        assert any(e["event"].startswith("Real player detected") for e in logs)

    def test_human_seen_by_outgoing_occupant_during_rotation(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        """Mid-rotation, a human on the outgoing roster retires both occupants."""
        controller.ensure_session()
        old_client = factory.last
        activate(old_client)
        outgoing = controller.begin_rotation()
        new = controller.current
        new_client = factory.last
        old_client.occupants[new.identity] = Occupant(new.identity)
        old_client.occupants["alice"] = Occupant("alice")

        assert presence.check() == 1

        assert controller.current is None
        assert controller.state.outgoing is None
        assert outgoing.state is SessionState.TERMINATED
        assert old_client.quit_called
        assert new_client.quit_called

    def test_own_occupants_are_not_humans_during_rotation(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        controller.ensure_session()
        old_client = factory.last
        activate(old_client)
        outgoing = controller.begin_rotation()
        new = controller.current
        new_client = factory.last
        activate(new_client)
        old_client.occupants[new.identity] = Occupant(new.identity)
        new_client.occupants[outgoing.identity] = Occupant(outgoing.identity)

        assert presence.check() == 0

        assert controller.current is new
        assert controller.state.outgoing is outgoing
        assert not old_client.quit_called

    def test_automated_occupants_are_not_humans(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        handle = controller.ensure_session()
        activate(factory.last)
        factory.last.occupants["other_bot"] = Occupant("other_bot", is_automated=True)

        assert presence.check() == 0
        assert controller.current is handle

    def test_heals_session_out_of_play(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        """With nobody around and the client out of play, the session is replaced."""
        old = controller.ensure_session()
        activate(factory.last)
        factory.last.connection_state = "login"

        presence.check()

        assert controller.current is not old
        assert len(factory.calls) == 2

    def test_young_connecting_session_left_alone(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        handle = controller.ensure_session()

        presence.check()

        assert controller.current is handle
        assert len(factory.calls) == 1

    def test_roster_error_is_logged(
        self,
        presence: PresenceMonitor,
        controller: SessionLifecycleController,
        factory: FakeClientFactory,
    ) -> None:
        handle = controller.ensure_session()

        class BrokenRoster:
            def items(self):
                raise RuntimeError("roster gone")

        factory.last.occupants = BrokenRoster()

        with capture_logs() as logs:
            assert presence.check() == 0

        assert controller.current is handle
        assert "roster_unavailable" in [e["event"] for e in logs]

    @pytest.mark.asyncio
    async def test_loop_runs_checks(
        self, controller: SessionLifecycleController, factory: FakeClientFactory
    ) -> None:
        config = SupervisorConfig(presence_interval_seconds=0.01)
        monitor = PresenceMonitor(config, controller)
        controller.ensure_session()
        activate(factory.last)
        factory.last.occupants["Alex"] = Occupant("Alex")

        await monitor.start()
        await asyncio.sleep(0.05)
        await monitor.stop()

        assert controller.current is None
        assert monitor.last_human_count == 1
