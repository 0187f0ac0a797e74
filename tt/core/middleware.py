"""
Request middleware: access logging.
"""

from __future__ import annotations

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = structlog.get_logger("tt.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request with its status and latency."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            client = request.client
            log.info(
                "http.request",
                client=f"{client.host}:{client.port}" if client else "-",
                method=request.method,
                path=request.url.path,
                query=request.url.query,
                protocol=f"HTTP/{request.scope.get('http_version', '1.1')}",
                user_agent=request.headers.get("user-agent", ""),
                status=status,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )
