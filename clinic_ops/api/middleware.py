"""API middleware for request logging."""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Probes hit these every few seconds.
QUIET_PATHS = ("/health", "/health/live", "/health/ready")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its status and timing, and expose the timing as X-Process-Time."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} status={response.status_code} "
            f"duration={elapsed:.3f}s client={request.client.host if request.client else 'unknown'}",
        )
        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        return response
