"""Request ID middleware.

Pure ASGI (not BaseHTTPMiddleware) so the SSE StreamingResponse of
/api/analyze-resume-stream is not buffered.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

_INBOUND_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _pick_request_id(scope: Scope) -> str:
    """Reuse a well-formed X-Request-ID sent by the UI, else mint an 8-char one."""
    inbound = Headers(scope=scope).get("x-request-id", "")
    if _INBOUND_ID.match(inbound):
        return inbound
    return uuid.uuid4().hex[:8]


class RequestIdMiddleware:
    """Tag every request/response cycle (and its log lines) with a request ID."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rid = _pick_request_id(scope)
        request_id_var.set(rid)
        scope.setdefault("state", {})["request_id"] = rid

        async def send_with_rid(message: dict) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = rid
            await send(message)

        await self.app(scope, receive, send_with_rid)
