# backend/tests/services/test_rate_sources.py
"""
Tests for the rate sources.

HTTP sources run against httpx.MockTransport, so no network is used.
"""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from fxrates.config import Settings
from fxrates.services.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from fxrates.services.exceptions import SourceUnavailableError
from fxrates.services.rate_sources import (
    ExchangeratesApiRateSource,
    FixerRateSource,
    MockProviderRateSource,
    StaticRateSource,
    build_rate_sources,
    normalize_rates,
)
from tests.conftest import FakeClock


def make_client(handler, base_url: str = "https://api.example.test") -> httpx.Client:
    return httpx.Client(base_url=base_url, transport=httpx.MockTransport(handler))


def json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"})


# =============================================================================
# NORMALIZATION
# =============================================================================

class TestNormalizeRates:

    def test_converts_to_decimal_and_uppercases(self):
        assert normalize_rates({"eur": "0.85", "GBP": 0.75}) == {
            "EUR": Decimal("0.85"),
            "GBP": Decimal("0.75"),
        }

    def test_drops_invalid_entries(self):
        raw = {"EUR": "0.85", "GBP": None, "JPY": "abc", "CHF": 0, "CAD": -1.2, "AUD": "NaN", "NZD": "Infinity"}

        assert normalize_rates(raw) == {"EUR": Decimal("0.85")}

    def test_drops_base_currency(self):
        assert normalize_rates({"USD": 1, "EUR": "0.85"}, base_currency="usd") == {"EUR": Decimal("0.85")}

    @pytest.mark.parametrize("raw", [None, {}])
    def test_empty(self, raw):
        assert normalize_rates(raw) == {}


# =============================================================================
# STATIC SOURCE
# =============================================================================

class TestStaticRateSource:

    def test_serves_table(self):
        source = StaticRateSource("fixed", {"usd": {"EUR": "0.85"}})

        assert source.fetch_latest_rates("USD") == {"EUR": Decimal("0.85")}
        assert source.fetch_latest_rates("JPY") == {}

    def test_returns_copy(self):
        source = StaticRateSource("fixed", {"USD": {"EUR": "0.85"}})

        source.fetch_latest_rates("USD")["EUR"] = Decimal("9")

        assert source.fetch_latest_rates("USD") == {"EUR": Decimal("0.85")}

    def test_availability_toggle(self):
        source = StaticRateSource("fixed", {}, available=False)
        assert source.is_available() is False

        source.set_available(True)
        assert source.is_available() is True

    def test_no_history_by_default(self):
        source = StaticRateSource("fixed", {"USD": {"EUR": "0.85"}})

        assert source.fetch_historical_rate("USD", "EUR", date(2024, 1, 15)) is None

    def test_serves_history_by_day(self):
        source = StaticRateSource("fixed", {}, history={date(2024, 1, 15): {"usd": {"EUR": "0.91"}}})

        assert source.fetch_historical_rate("USD", "eur", date(2024, 1, 15)) == Decimal("0.91")
        assert source.fetch_historical_rate("USD", "GBP", date(2024, 1, 15)) is None
        assert source.fetch_historical_rate("USD", "EUR", date(2024, 1, 16)) is None

    def test_repr(self):
        assert repr(StaticRateSource("fixed", {})) == "StaticRateSource(name='fixed')"


# =============================================================================
# HTTP SOURCES
# =============================================================================

class TestFixerRateSource:
    """Tests for the Fixer.io dialect."""

    def test_fetch_latest_rates(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return json_response({
                "success": True,
                "base": "USD",
                "date": "2024-06-15",
                "rates": {"EUR": 0.851234, "GBP": 0.75, "USD": 1},
            })

        source = FixerRateSource("https://api.example.test", "secret", client=make_client(handler))

        rates = source.fetch_latest_rates("usd")

        assert rates == {"EUR": Decimal("0.851234"), "GBP": Decimal("0.75")}
        assert requests[0].url.path == "/latest"
        assert requests[0].url.params["base"] == "USD"
        assert requests[0].url.params["access_key"] == "secret"
        assert source.name == "fixer.io"

    def test_floats_are_parsed_exactly(self):
        """0.1 must not become 0.1000000000000000055511151231257827."""
        source = FixerRateSource(
            "https://api.example.test", "k",
            client=make_client(lambda r: httpx.Response(200, content=b'{"rates": {"EUR": 0.1}}')),
        )

        assert str(source.fetch_latest_rates("USD")["EUR"]) == "0.1"

    def test_error_payload_raises(self):
        handler = lambda r: json_response({
            "success": False,
            "error": {"code": 101, "type": "invalid_access_key", "info": "You have not supplied a valid API Access Key."},
        })
        source = FixerRateSource("https://api.example.test", "bad", client=make_client(handler))

        with pytest.raises(SourceUnavailableError, match="valid API Access Key"):
            source.fetch_latest_rates("USD")

    @pytest.mark.parametrize("response, reason", [
        (httpx.Response(500), "HTTP 500"),
        (httpx.Response(200, content=b"<html>"), "invalid JSON"),
        (httpx.Response(200, content=b"[1, 2]"), "unexpected payload"),
    ])
    def test_bad_responses_raise(self, response, reason):
        source = FixerRateSource("https://api.example.test", "k", client=make_client(lambda r: response))

        with pytest.raises(SourceUnavailableError, match=reason) as exc_info:
            source.fetch_latest_rates("USD")

        assert exc_info.value.source == "fixer.io"

    def test_timeout_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        source = FixerRateSource("https://api.example.test", "k", timeout=3, client=make_client(handler))

        with pytest.raises(SourceUnavailableError, match="timed out after 3s"):
            source.fetch_latest_rates("USD")

    def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        source = FixerRateSource("https://api.example.test", "k", client=make_client(handler))

        with pytest.raises(SourceUnavailableError, match="network error"):
            source.fetch_latest_rates("USD")

    def test_missing_rates_is_empty(self):
        source = FixerRateSource(
            "https://api.example.test", "k",
            client=make_client(lambda r: json_response({"success": True, "base": "USD"})),
        )

        assert source.fetch_latest_rates("USD") == {}

    def test_fetch_historical_rate(self):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return json_response({"success": True, "historical": True, "rates": {"EUR": 0.9}})

        source = FixerRateSource("https://api.example.test", "k", client=make_client(handler))

        rate = source.fetch_historical_rate("USD", "eur", date(2024, 1, 15))

        assert rate == Decimal("0.9")
        assert requests[0].url.path == "/2024-01-15"
        assert requests[0].url.params["symbols"] == "EUR"

    def test_historical_rate_missing(self):
        source = FixerRateSource(
            "https://api.example.test", "k",
            client=make_client(lambda r: json_response({"success": True, "rates": {}})),
        )

        assert source.fetch_historical_rate("USD", "EUR", date(2024, 1, 15)) is None


class TestCircuitBreakerIntegration:
    """Availability is driven by the source's breaker."""

    def test_repeated_failures_make_source_unavailable(self):
        breaker = CircuitBreaker(name="fixer.io", failure_threshold=2, recovery_timeout=60, clock=FakeClock())
        source = FixerRateSource(
            "https://api.example.test", "k",
            client=make_client(lambda r: httpx.Response(503)),
            breaker=breaker,
        )

        assert source.is_available() is True
        for _ in range(2):
            with pytest.raises(SourceUnavailableError):
                source.fetch_latest_rates("USD")

        assert source.is_available() is False
        with pytest.raises(CircuitBreakerOpen):
            source.fetch_latest_rates("USD")

    def test_success_keeps_source_available(self):
        source = FixerRateSource(
            "https://api.example.test", "k",
            client=make_client(lambda r: json_response({"success": True, "rates": {"EUR": 0.85}})),
        )

        source.fetch_latest_rates("USD")

        assert source.is_available() is True
        assert source.breaker.failure_count == 0


class TestOtherDialects:

    def test_exchangeratesapi(self):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return json_response({"success": True, "rates": {"EUR": 0.85}})

        source = ExchangeratesApiRateSource("https://api.example.test", "key", client=make_client(handler))

        assert source.fetch_latest_rates("USD") == {"EUR": Decimal("0.85")}
        assert source.name == "exchangeratesapi.io"
        assert requests[0].url.params["access_key"] == "key"

    def test_mock_provider_uses_v1_paths_without_key(self):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return json_response({"base": "USD", "rates": {"EUR": "0.86"}})

        source = MockProviderRateSource("mock-provider-1", "https://mock.test", client=make_client(handler))

        assert source.fetch_latest_rates("USD") == {"EUR": Decimal("0.86")}
        assert requests[0].url.path == "/v1/latest"
        assert "access_key" not in requests[0].url.params


# =============================================================================
# SOURCE LIST
# =============================================================================

class TestBuildRateSources:

    def test_no_sources_configured(self):
        assert build_rate_sources(Settings(environment="test")) == []

    def test_order_and_names(self):
        settings = Settings(
            environment="test",
            fixer_api_url="https://fixer.test",
            fixer_api_key="f",
            exchangerates_api_url="https://er.test",
            exchangerates_api_key="e",
            mock_provider_urls=["https://m1.test", "https://m2.test"],
        )

        sources = build_rate_sources(settings)

        assert [s.name for s in sources] == [
            "fixer.io",
            "exchangeratesapi.io",
            "mock-provider-1",
            "mock-provider-2",
        ]
        for source in sources:
            source.close()

    def test_source_without_key_is_skipped(self):
        settings = Settings(environment="test", fixer_api_url="https://fixer.test")

        assert build_rate_sources(settings) == []
