"""
Bearer-token guard for the scheduled sweep endpoint.

Validates ``Authorization: Bearer <secret>`` on ``/api/v1/cron/`` routes
when a cron secret is configured. Every other path passes through.
"""

import hmac

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

CRON_PREFIX = "/api/v1/cron/"


class CronAuthMiddleware(BaseHTTPMiddleware):
    """Enforce Bearer token auth on cron routes when ``secret`` is set."""

    def __init__(self, app: ASGIApp, secret: str = "") -> None:
        super().__init__(app)
        self._secret = secret

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # No secret configured: the endpoint is open (local development)
        if not self._secret or not request.url.path.startswith(CRON_PREFIX):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        token = auth_header[len("Bearer ") :] if auth_header.startswith("Bearer ") else ""
        if not token or not hmac.compare_digest(token, self._secret):
            return JSONResponse(
                status_code=401,
                content={"detail": "Unauthorized", "code": "AUTH_REQUIRED"},
            )

        return await call_next(request)
