"""
HTTP request logging middleware.

Binds the request id, and the session id for session and recovery routes,
so every validation and sweep event logged while serving the request can be
traced back to it.
"""

import re
import time
import uuid

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.stdlib.get_logger("http")

_SESSION_PATH = re.compile(r"^/api/(?:session|recovery)/(?P<session_id>[^/]+)")


class RequestLoggingMiddleware:
    """ASGI middleware logging one `http_request` event per request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get("x-request-id") or uuid.uuid4().hex[:8]
        path = scope["path"]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        match = _SESSION_PATH.match(path)
        if match:
            structlog.contextvars.bind_contextvars(session_id=match.group("session_id"))

        start = time.perf_counter()
        status_code = 500

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message).append("x-request-id", request_id)
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            else:
                log = logger.info

            client = scope.get("client")
            log(
                "http_request",
                method=scope["method"],
                path=path,
                status=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
                client=client[0] if client else None,
            )
