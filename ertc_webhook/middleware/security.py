"""Security headers and request tracing for every HTTP response."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ertc_webhook.config import settings

logger = logging.getLogger("ertc.http")

# The receiver only serves JSON and file downloads, so the CSP is locked down.
SECURITY_HEADERS: dict[str, str] = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ``X-Request-ID`` and add hardening headers.

    Incoming ``X-Request-ID`` values from the webhook sender are kept so a
    submission can be traced across both services.

    Usage:
        app.add_middleware(SecurityHeadersMiddleware)
    """

    def __init__(self, app: Callable, enabled: bool | None = None):
        super().__init__(app)
        self.enabled = settings.enable_security_headers if enabled is None else enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        t0 = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - t0) * 1000

        if self.enabled:
            for name, value in SECURITY_HEADERS.items():
                response.headers.setdefault(name, value)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "%s %s -> %d (%.1f ms) request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
            request_id,
        )
        return response


def parse_cors_origins(origins_string: str) -> list[str]:
    """Parse CORS origins from a comma-separated string.

    >>> parse_cors_origins("https://a.example, https://b.example")
    ['https://a.example', 'https://b.example']
    >>> parse_cors_origins("*")
    ['*']
    """
    if origins_string.strip() == "*":
        return ["*"]
    return [origin.strip() for origin in origins_string.split(",") if origin.strip()]
