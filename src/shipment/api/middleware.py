"""Access-log middleware — one structured log line per request.

Also exposes server-side latency as ``X-Process-Time-Ms``. For streamed
action responses the time covers the start of the stream, not its end.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from shipment.core.logging import get_logger

logger = get_logger("shipment.api.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and elapsed time for every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
        logger.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            elapsed_ms=elapsed_ms,
            client=request.client.host if request.client else None,
        )
        return response
