"""Request logging middleware for the health server.

Uptime pingers hit the probe paths every few seconds, so those requests are
logged at debug level and everything else at info. Each request gets a
correlation ID (taken from ``X-Correlation-ID`` or generated) that is bound to
the structlog context while the request runs and echoed on the response.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware

from afkwarden.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
PROBE_PATHS = frozenset({"/", "/healthz"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its status, duration and correlation ID.

    Attributes:
        probe_paths: Paths whose successful requests are logged at debug level
    """

    def __init__(self, app: ASGIApp, probe_paths: Iterable[str] = PROBE_PATHS):
        super().__init__(app)
        self.probe_paths = frozenset(probe_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        path = request.url.path
        started = time.perf_counter()

        with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "request_failed",
                    method=request.method,
                    path=path,
                    duration_ms=_elapsed_ms(started),
                    error=str(exc),
                    exc_info=True,
                )
                raise

            log = logger.debug if path in self.probe_paths else logger.info
            log(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
