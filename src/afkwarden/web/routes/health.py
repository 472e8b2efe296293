"""Health check endpoints for afkwarden.

This module provides:
- GET /        static banner, for platforms that probe the root path
- GET /healthz liveness probe returning "OK"
- GET /status  JSON snapshot of the supervisor

The probes only report that the process is serving; they never depend on
the game session, which is replaced and rotated routinely.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from afkwarden.logging import get_logger
from afkwarden.supervisor.runtime import SupervisorStatus

if TYPE_CHECKING:
    from afkwarden.supervisor.runtime import Supervisor

logger = get_logger(__name__)


def get_supervisor(request: Request) -> Supervisor | None:
    """Retrieve the supervisor stored in app state, if any.

    Args:
        request: FastAPI request object

    Returns:
        Supervisor from app.state, or None when the app runs without one
    """
    return getattr(request.app.state, "supervisor", None)


def create_health_router(root_message: str = "Bot has arrived") -> APIRouter:
    """Create health check router with endpoints.

    Args:
        root_message: Static body served on GET /

    Returns:
        Configured APIRouter with health endpoints.
    """
    router = APIRouter(tags=["health"])

    @router.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        """Static banner."""
        return root_message

    @router.get("/healthz", response_class=PlainTextResponse)
    async def healthz() -> str:
        """Basic liveness check."""
        return "OK"

    @router.get("/status", response_model=SupervisorStatus)
    async def status(request: Request) -> SupervisorStatus:
        """Supervisor snapshot.

        Returns:
            Current identity, session state, failure counter and rotation state.
        """
        supervisor = get_supervisor(request)
        if supervisor is None:
            return SupervisorStatus(running=False)
        return supervisor.snapshot()

    return router
