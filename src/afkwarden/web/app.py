"""FastAPI application factory for afkwarden.

This module provides the application factory that creates and configures a
FastAPI application with:
- Request logging middleware with correlation IDs
- Health endpoints (/, /healthz, /status)
- Supervisor lifecycle management: the supervisor starts with the app and
  retires its sessions on shutdown

Example usage:
    >>> from afkwarden.config import WardenConfig
    >>> from afkwarden.web.app import create_app
    >>>
    >>> app = create_app(WardenConfig(), supervisor)
    >>> import uvicorn
    >>> uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from afkwarden import __version__
from afkwarden.config import WardenConfig
from afkwarden.logging import get_logger
from afkwarden.web.middleware import RequestLoggingMiddleware
from afkwarden.web.routes.health import create_health_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from afkwarden.supervisor.runtime import Supervisor

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the supervisor with the server and stop it on shutdown.

    Args:
        app: FastAPI application instance

    Yields:
        None after startup, cleans up on context exit
    """
    config: WardenConfig = app.state.config
    supervisor: Supervisor | None = app.state.supervisor

    logger.info("app_startup_begin", host=config.web.host, port=config.web.port)

    if supervisor is not None:
        await supervisor.start()

    yield

    logger.info("app_shutdown_begin")
    if supervisor is not None:
        await supervisor.stop()


def create_app(
    config: WardenConfig | None = None,
    supervisor: Supervisor | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application.

    Args:
        config: Optional WardenConfig. If None, creates default config.
        supervisor: Supervisor to run for the lifetime of the app. If None,
            the app only serves the health endpoints.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = WardenConfig()

    app = FastAPI(
        title="afkwarden",
        version=__version__,
        description="Automated occupant supervisor",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.supervisor = supervisor

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(create_health_router(config.web.root_message))

    logger.debug("app_created", version=__version__)

    return app
