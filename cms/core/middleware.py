"""
FastAPI exception handlers and middleware.

Converts all AppError subclasses and unexpected exceptions into
consistent JSON responses. Tags each request with a correlation ID,
records request metrics and adds security headers.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from cms.core.errors import AppError, ErrorCode

_log = structlog.get_logger(__name__)

HTTP_REQUESTS = Counter(
    "cms_http_requests_total",
    "HTTP requests served, by route template and status code",
    ["method", "route", "status"],
)
HTTP_LATENCY = Histogram(
    "cms_http_request_duration_seconds",
    "HTTP request latency in seconds, by route template",
    ["method", "route"],
)


def _route_template(request: Request) -> str:
    """Route path template (``/api/cms/collections/{name}``) to keep label cardinality bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request/response cycle with a correlation ID.

    The ID comes from the ``X-Correlation-ID`` request header or is a new
    UUID4. It is bound to the structlog context, echoed on the response,
    and the request is counted and timed for ``/metrics``.
    """

    HEADER = "X-Correlation-ID"

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(self.HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        route = _route_template(request)
        HTTP_REQUESTS.labels(request.method, route, str(response.status_code)).inc()
        HTTP_LATENCY.labels(request.method, route).observe(elapsed)

        response.headers[self.HEADER] = correlation_id
        _log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=int(elapsed * 1000),
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every ``/api/cms`` response.

    Routes that set their own Cache-Control (media files) keep it. In
    production a locked-down CSP and HSTS are added as well.
    """

    def __init__(self, app: ASGIApp, *, production: bool = False, prefix: str = "/api/cms") -> None:
        super().__init__(app)
        self.production = production
        self.prefix = prefix

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        if not request.url.path.startswith(self.prefix):
            return response

        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["X-XSS-Protection"] = "1; mode=block"
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        if "cache-control" not in headers:
            headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"
            headers["Pragma"] = "no-cache"
            headers["Expires"] = "0"
        if self.production:
            headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# ── Exception handlers ────────────────────────────────────────────────── #


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Convert a domain AppError to a structured JSON response."""
    _log.warning(
        "application_error",
        error_code=exc.code.value,
        message=exc.message,
        http_status=exc.http_status,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers={
            "X-Correlation-ID": getattr(request.state, "correlation_id", ""),
            **exc.headers,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    Never leaks internal detail to the client.
    """
    _log.exception("unhandled_exception", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "An unexpected internal error occurred.",
                "detail": {},
            }
        },
        headers={"X-Correlation-ID": getattr(request.state, "correlation_id", "")},
    )
