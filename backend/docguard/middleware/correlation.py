"""
Correlation ID middleware
=========================
Injects a unique X-Correlation-ID into every request. The id is stored in
a context variable so every log line written while serving the request,
including the analysis pipeline it triggers, carries it.
"""
from __future__ import annotations

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from docguard.core.logger import correlation_id_var, logger


class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # Accept from client or generate fresh
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)

        try:
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000

            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)"
            )
        finally:
            correlation_id_var.reset(token)

        # Echo for client-side log correlation
        response.headers["X-Correlation-ID"] = correlation_id
        return response
