"""FastAPI route definitions for the afkwarden web surface."""

from __future__ import annotations

from afkwarden.web.routes.health import create_health_router

__all__ = [
    "create_health_router",
]
