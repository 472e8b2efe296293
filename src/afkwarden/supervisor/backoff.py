"""Consecutive failure tracking and repeated-failure alerting.

The tracker only observes: it never blocks or stops retries. Crossing the
configured threshold produces one ALERT entry; the counter has to be reset
by an Active session before the alert can fire again.

Retry delays are fixed by default. Setting ``backoff_multiplier`` above 1.0
grows them exponentially per consecutive failure, capped at
``max_backoff_seconds``; retries stay unconditional either way.
"""

from __future__ import annotations

import structlog

from afkwarden.config import SupervisorConfig
from afkwarden.supervisor.session import SupervisorState

logger = structlog.get_logger(__name__)


class FailureBackoffTracker:
    """Counts consecutive failed sessions in SupervisorState."""

    def __init__(self, config: SupervisorConfig, state: SupervisorState):
        """Initialize tracker.

        Args:
            config: Supervisor configuration with threshold and backoff settings
            state: Shared supervisor state holding the counter
        """
        self.config = config
        self.state = state
        self._logger = structlog.get_logger(__name__)

    @property
    def failures(self) -> int:
        return self.state.consecutive_failures

    @property
    def alerting(self) -> bool:
        """Whether the counter is at or above the alert threshold."""
        return self.state.consecutive_failures >= self.config.max_failures

    def record_failure(self) -> int:
        """Count one failed session and alert on threshold crossing.

        Returns:
            The updated consecutive failure count
        """
        self.state.consecutive_failures += 1
        count = self.state.consecutive_failures

        if count == self.config.max_failures:
            self._logger.critical(
                f"ALERT: failed to hold a session {count} times in a row!",
                consecutive_failures=count,
            )
        return count

    def reset(self) -> None:
        """Clear the counter after an Active transition."""
        if self.state.consecutive_failures:
            self._logger.debug(
                "failure_counter_reset", previous=self.state.consecutive_failures
            )
        self.state.consecutive_failures = 0

    def delay_for(self, base_delay: float) -> float:
        """Retry delay for the current failure streak.

        Formula: min(base * multiplier^(failures - 1), max_backoff), and never
        below base.

        Args:
            base_delay: Configured delay for the failure kind

        Returns:
            Delay in seconds
        """
        exponent = max(self.state.consecutive_failures - 1, 0)
        delay = base_delay * (self.config.backoff_multiplier**exponent)
        return max(base_delay, min(delay, self.config.max_backoff_seconds))
