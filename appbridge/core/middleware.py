"""ASGI middleware for the appbridge service.

Registered in create_app() after CORS:
  1. RequestIdMiddleware: reads or generates X-Request-ID, stores it in a ContextVar
  2. SecurityHeadersMiddleware: hardening headers on every response

The ContextVar `_request_id_var` is read by the logging layer so every log
line emitted while serving a callback or webhook carries the request ID.
"""

import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Paths whose responses carry one-time values (state tokens, redirects).
_NO_STORE_PREFIXES = ("/auth/github/app/install",)


def get_request_id() -> str:
    """Return the current request's ID, or an empty string outside a request."""
    return _request_id_var.get()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint a UUID4, and echo it back.

    GitHub does not send X-Request-ID, so webhook and callback requests
    always get a fresh ID. The frontend may send one on install/start.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        token = _request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every outgoing response.

    Install start and callback responses are also marked `no-store` so a
    state token or a redirect decision is never served from a cache.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith(_NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
        return response
