"""Health-check web surface for afkwarden.

This module provides the FastAPI application that keeps hosting platforms
and uptime monitors informed that the supervisor process is alive.
"""

from __future__ import annotations

from afkwarden.web.app import create_app
from afkwarden.web.middleware import RequestLoggingMiddleware

__all__ = [
    "RequestLoggingMiddleware",
    "create_app",
]
