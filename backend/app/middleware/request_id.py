"""
SpecDate Backend — Request ID Middleware
==========================================

What:  Tags every request with a short ID and echoes it in X-Request-ID.
How:   Takes the client's X-Request-ID when present, otherwise generates one;
       stores it in a ContextVar for loggers and exception handlers.
Who:   Applied to every request via Starlette middleware.

Error envelopes carry the same ID as `request_id`, so a mobile client can
quote it in a bug report and it matches the server log line.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests share a thread but not this value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID and returns it in the response headers."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
