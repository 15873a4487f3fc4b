from __future__ import annotations

import logging
import time

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies whose declared Content-Length exceeds ``max_bytes``."""

    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max(1, max_bytes)

    async def dispatch(self, request: Request, call_next) -> Response:
        raw_length = request.headers.get("content-length")
        try:
            declared = int(raw_length) if raw_length else 0
        except ValueError:
            declared = 0
        if declared > self._max_bytes:
            logger.warning("Rejected %s %s: body of %d bytes", request.method, request.url.path, declared)
            return JSONResponse(
                status_code=413,
                content={
                    "message": f"Request body too large. Maximum allowed is {self._max_bytes} bytes.",
                    "code": "payload_too_large",
                    "details": {"content_length": declared},
                },
            )

        started = time.perf_counter()
        response = await call_next(request)
        if response.status_code >= 500:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                "%s %s returned %d after %.1fms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
        return response
