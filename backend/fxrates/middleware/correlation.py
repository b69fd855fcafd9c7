# backend/fxrates/middleware/correlation.py
"""
Correlation ID middleware.

Every request gets a correlation ID, taken from X-Correlation-ID or
X-Request-ID when the client sends a well-formed one, generated otherwise.
The ID is stored in context for the log filter and echoed back in the
X-Correlation-ID response header.

Client-supplied IDs end up in log lines, so only short IDs made of
letters, digits, '-', '_' and '.' are accepted.

Usage:
    app.add_middleware(CorrelationIdMiddleware)

    curl -H "X-Correlation-ID: trace-123" http://localhost:8000/health
    # < X-Correlation-ID: trace-123
"""

import logging
import re
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from fxrates.utils.context import clear_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

_VALID_ID = re.compile(r"^[A-Za-z0-9._\-]{1,128}$")


class CorrelationIdMiddleware:
    """Pure ASGI middleware; HTTP requests only, other scopes pass through."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        correlation_id = extract_correlation_id(Headers(scope=scope))
        set_correlation_id(correlation_id)

        async def send_with_header(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[CORRELATION_ID_HEADER] = correlation_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_header)
        finally:
            clear_correlation_id()


def extract_correlation_id(headers: Headers) -> str:
    """First valid ID from the request headers, or a new UUID."""
    for name in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
        value = headers.get(name)
        if not value:
            continue
        if _VALID_ID.match(value):
            return value
        logger.debug(f"Ignoring malformed {name} header")
    return str(uuid.uuid4())
