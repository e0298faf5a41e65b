from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("api.requests")

SESSION_HEADER = "X-Session-Id"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Times each request and tags the log line with the caller's session id, if any."""

    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        session_id = (request.headers.get(SESSION_HEADER) or "").strip() or None
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                extra={"method": request.method, "path": request.url.path, "session_id": session_id},
            )
            raise
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Process-Time-Ms"] = str(duration_ms)
        if session_id:
            response.headers[SESSION_HEADER] = session_id
        logger.info(
            "request_completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "session_id": session_id,
            },
        )
        return response
