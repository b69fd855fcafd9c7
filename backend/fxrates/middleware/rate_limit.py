# backend/fxrates/middleware/rate_limit.py
"""
Per-client rate limiting with slowapi.

Limits are keyed by client IP. Forwarded headers are honoured only when
the direct peer is a trusted proxy (or TRUST_PROXY_HEADERS is set), so
clients cannot pick their own bucket.

Limit strings live in fxrates.services.constants:
    RATE_LIMIT_DEFAULT  - conversion, history, trends, currency reads
    RATE_LIMIT_WRITE    - currency registration
    RATE_LIMIT_REFRESH  - anything that calls upstream sources
    RATE_LIMIT_HEALTH   - health checks

Usage:
    @router.get("/exchange-rates")
    @limiter.limit(RATE_LIMIT_DEFAULT)
    def convert(request: Request, ...):
        ...
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from fxrates.config import settings
from fxrates.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_HEALTH,
    RATE_LIMIT_REFRESH,
    RATE_LIMIT_WRITE,
)

logger = logging.getLogger(__name__)

# Seconds suggested to clients in Retry-After
RETRY_AFTER_SECONDS = 60


def _get_client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For / X-Real-IP only from trusted proxies."""
    peer_ip = get_remote_address(request)

    if settings.trust_proxy_headers or peer_ip in settings.trusted_proxy_ips:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    return peer_ip


limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=not settings.is_test,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same error shape as every other API error."""
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"
    logger.warning(f"Rate limit exceeded for {_get_client_ip(request)}: {limit_info}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimitError",
            "message": f"Too many requests. {limit_info}",
            "details": {"retry_after": RETRY_AFTER_SECONDS},
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_WRITE",
    "RATE_LIMIT_REFRESH",
    "RATE_LIMIT_HEALTH",
]
