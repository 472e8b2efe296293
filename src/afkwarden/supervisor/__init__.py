"""Connection-lifecycle supervisor for afkwarden.

This module implements the session state machine, the lifecycle controller,
the liveness watchdog, the presence monitor, failure tracking, identity
rotation and the runtime that wires them together.
"""

from __future__ import annotations

from afkwarden.supervisor.backoff import FailureBackoffTracker
from afkwarden.supervisor.controller import SessionLifecycleController
from afkwarden.supervisor.errors import (
    ConnectFailure,
    ProtocolError,
    RemoteTermination,
    SessionFailure,
    TransportLoss,
    failure_for,
)
from afkwarden.supervisor.heartbeat import HeartbeatLogger
from afkwarden.supervisor.presence import PresenceMonitor
from afkwarden.supervisor.rotation import IdentityRotationScheduler
from afkwarden.supervisor.runtime import Supervisor, SupervisorStatus
from afkwarden.supervisor.session import SessionHandle, SupervisorState
from afkwarden.supervisor.state_machine import (
    VALID_TRANSITIONS,
    Effect,
    SessionEvent,
    SessionState,
    Transition,
    transition,
    validate_transition,
)
from afkwarden.supervisor.timers import PeriodicTask, Timer
from afkwarden.supervisor.watchdog import (
    LivenessWatchdog,
    WatchdogAction,
    WatchdogActionType,
)

__all__ = [
    # Backoff
    "FailureBackoffTracker",
    # Controller
    "SessionLifecycleController",
    # Errors
    "ConnectFailure",
    "ProtocolError",
    "RemoteTermination",
    "SessionFailure",
    "TransportLoss",
    "failure_for",
    # Periodic components
    "HeartbeatLogger",
    "IdentityRotationScheduler",
    "LivenessWatchdog",
    "PresenceMonitor",
    "WatchdogAction",
    "WatchdogActionType",
    # Runtime
    "Supervisor",
    "SupervisorStatus",
    # Session
    "SessionHandle",
    "SupervisorState",
    # State machine
    "Effect",
    "SessionEvent",
    "SessionState",
    "Transition",
    "VALID_TRANSITIONS",
    "transition",
    "validate_transition",
    # Timers
    "PeriodicTask",
    "Timer",
]
