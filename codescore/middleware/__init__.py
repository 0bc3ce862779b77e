"""ASGI middleware: request IDs and access logging.

Both are pure ASGI classes rather than ``BaseHTTPMiddleware`` so that
background tasks started by a handler are not tied to the response cycle.
"""

import logging
import time
import uuid

from starlette.types import ASGIApp, Receive, Scope, Send

access_logger = logging.getLogger("codescore.access")

_SKIP_PREFIXES = ("/health",)


class RequestIDMiddleware:
    """Tags every HTTP request with an ``X-Request-ID``.

    A client-supplied ID is reused; otherwise a UUID-4 is generated.  The
    ID is stored on ``scope["state"]`` for the exception handlers and is
    echoed back on the response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(b"x-request-id", b"")
        request_id = incoming.decode() or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_id(message: dict) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_id)


class AccessLogMiddleware:
    """Logs one line per HTTP request: method, path, status and wall time."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        path: str = scope.get("path", "")
        if scope["type"] != "http" or path.startswith(_SKIP_PREFIXES):
            await self.app(scope, receive, send)
            return

        status_code = 0
        t0 = time.perf_counter()

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            if status_code == 0:
                status_code = 500
            raise
        finally:
            wall_ms = (time.perf_counter() - t0) * 1000
            request_id = scope.get("state", {}).get("request_id", "-")
            level = logging.WARNING if status_code >= 500 else logging.INFO
            access_logger.log(
                level,
                "%s %s -> %d (%.1f ms) [request_id=%s]",
                scope.get("method", "?"), path, status_code, wall_ms, request_id,
            )
