"""
Correlation ID middleware.

Tags every HTTP request and dashboard WebSocket connection with a correlation
ID (from the client, or generated) and a fresh request ID. Both are held in
context variables so log records and problem responses can carry them.

Headers:
- X-Correlation-ID: Session-level ID from the client (persists across requests)
- X-Request-ID: Per-request unique identifier
"""

import uuid
import logging
from contextvars import ContextVar

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s/%(request_id)s] %(message)s"


def generate_id() -> str:
    """Generate a short unique ID suitable for logging."""
    return str(uuid.uuid4())[:12]


class CorrelationIdMiddleware:
    """
    ASGI middleware that assigns correlation/request IDs.

    HTTP responses echo both IDs back as headers. WebSocket connections keep
    their IDs for the life of the connection, so every dashboard snapshot
    logged for a socket shares one request ID.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        correlation_id = headers.get("X-Correlation-ID") or generate_id()
        request_id = headers.get("X-Request-ID") or generate_id()

        correlation_token = correlation_id_ctx.set(correlation_id)
        request_token = request_id_ctx.set(request_id)
        scope.setdefault("state", {}).update(correlation_id=correlation_id, request_id=request_id)

        async def send_with_ids(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                response_headers["X-Correlation-ID"] = correlation_id
                response_headers["X-Request-ID"] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_ids)
        finally:
            request_id_ctx.reset(request_token)
            correlation_id_ctx.reset(correlation_token)


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return correlation_id_ctx.get() or "unknown"


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_ctx.get() or "unknown"


class CorrelationLogFilter(logging.Filter):
    """Logging filter that injects correlation IDs into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.request_id = get_request_id()
        return True


def install_log_filter(handler_owner: logging.Logger = None) -> None:
    """Attach CorrelationLogFilter to every handler of ``handler_owner`` (root by default)."""
    owner = handler_owner or logging.getLogger()
    for handler in owner.handlers:
        if not any(isinstance(f, CorrelationLogFilter) for f in handler.filters):
            handler.addFilter(CorrelationLogFilter())
