# backend/tests/test_rate_limit.py
"""
Tests for client keying and the 429 response.

The limiter itself is disabled in the test environment.
"""

import asyncio
import json
from unittest.mock import MagicMock

from starlette.requests import Request

from fxrates.config import settings
from fxrates.middleware import rate_limit
from fxrates.middleware.rate_limit import RETRY_AFTER_SECONDS, _get_client_ip


def make_request(peer: str, headers: dict[str, str] | None = None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": raw_headers,
        "client": (peer, 12345),
    })


class TestClientIp:

    def test_peer_address_by_default(self):
        request = make_request("203.0.113.5", {"X-Forwarded-For": "198.51.100.1"})

        assert _get_client_ip(request) == "203.0.113.5"

    def test_forwarded_for_from_trusted_proxy(self, monkeypatch):
        monkeypatch.setattr(settings, "trusted_proxy_ips", ["10.0.0.1"])
        request = make_request("10.0.0.1", {"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})

        assert _get_client_ip(request) == "198.51.100.1"

    def test_real_ip_when_trusting_all(self, monkeypatch):
        monkeypatch.setattr(settings, "trust_proxy_headers", True)
        request = make_request("10.0.0.2", {"X-Real-IP": " 198.51.100.7 "})

        assert _get_client_ip(request) == "198.51.100.7"


def test_exceeded_handler_uses_error_shape():
    exc = MagicMock(detail="5 per 1 minute")

    response = asyncio.run(
        rate_limit.rate_limit_exceeded_handler(make_request("203.0.113.5"), exc)
    )

    assert response.status_code == 429
    assert response.headers["Retry-After"] == str(RETRY_AFTER_SECONDS)
    body = json.loads(response.body)
    assert body["error"] == "RateLimitError"
    assert "5 per 1 minute" in body["message"]
