# backend/tests/routers/test_exchange_rates_api.py
"""
Tests for the exchange rate endpoints.

Source quotes (see routers/conftest.py):
    source-a: USD->EUR 0.85, USD->GBP 0.74, EUR->USD 1.17
    source-b: USD->EUR 0.87, USD->GBP 0.75
"""

from datetime import date
from decimal import Decimal

import pytest

from fxrates.services.rate_sources.static import StaticRateSource
from tests.conftest import create_observation, save_series

CONVERT_URL = "/api/v1/currencies/exchange-rates"
REFRESH_URL = "/api/v1/currencies/refresh"
BEST_RATE_URL = "/api/v1/currencies/best-rate"
HISTORY_URL = "/api/v1/currencies/history"
BACKFILL_URL = "/api/v1/currencies/history/backfill"


# =============================================================================
# REFRESH
# =============================================================================

class TestRefresh:

    def test_refresh_updates_all_pairs(self, client):
        """Refresh should report one update per aggregated pair."""
        response = client.post(REFRESH_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Exchange rates refreshed successfully"
        assert data["updated_count"] == 3
        assert "timestamp" in data

    def test_refresh_caches_best_rates(self, client, cache):
        """Cache should hold the best rate of each pair after refresh."""
        client.post(REFRESH_URL)

        assert cache.get_rate("USD", "EUR") == Decimal("0.87")
        assert cache.get_rate("USD", "GBP") == Decimal("0.75")
        assert cache.get_rate("EUR", "USD") == Decimal("1.17")

    def test_refresh_persists_observations(self, client, rate_store):
        client.post(REFRESH_URL)

        latest = rate_store.find_latest_rate("USD", "EUR")
        assert latest.rate == Decimal("0.87")
        assert latest.source_name == "aggregated"

    def test_all_sources_down(self, client, sources):
        """No available source is not an error; nothing is updated."""
        for source in sources:
            source.set_available(False)

        response = client.post(REFRESH_URL)

        assert response.status_code == 200
        assert response.json()["updated_count"] == 0


# =============================================================================
# CONVERSION
# =============================================================================

class TestConvert:

    def test_convert_after_refresh(self, client):
        """Conversion should use the refreshed best rate."""
        client.post(REFRESH_URL)

        response = client.get(CONVERT_URL, params={"amount": "100", "from": "USD", "to": "EUR"})

        assert response.status_code == 200
        data = response.json()
        assert data["from"] == "USD"
        assert data["to"] == "EUR"
        assert data["converted_amount"] == "87.00"
        assert Decimal(data["rate"]) == Decimal("0.87")

    def test_lowercase_codes(self, client):
        client.post(REFRESH_URL)

        response = client.get(CONVERT_URL, params={"amount": "1", "from": "usd", "to": "gbp"})

        assert response.status_code == 200
        assert response.json()["from"] == "USD"
        assert response.json()["converted_amount"] == "0.75"

    def test_falls_back_to_database(self, client, rate_store, cache):
        """Cache miss should read the database and write back."""
        rate_store.save(create_observation("USD", "EUR", "0.90"))

        response = client.get(CONVERT_URL, params={"amount": "10", "from": "USD", "to": "EUR"})

        assert response.status_code == 200
        assert response.json()["converted_amount"] == "9.00"
        assert cache.get_rate("USD", "EUR") == Decimal("0.90")

    def test_rounds_half_up(self, client, rate_store):
        rate_store.save(create_observation("USD", "EUR", "0.123"))

        response = client.get(CONVERT_URL, params={"amount": "10", "from": "USD", "to": "EUR"})

        assert response.json()["converted_amount"] == "1.23"

    def test_same_currency(self, client):
        """Identity conversion needs no stored rate."""
        response = client.get(CONVERT_URL, params={"amount": "42.5", "from": "EUR", "to": "EUR"})

        assert response.status_code == 200
        assert Decimal(response.json()["converted_amount"]) == Decimal("42.5")
        assert Decimal(response.json()["rate"]) == Decimal("1")

    def test_unknown_pair(self, client):
        """Unknown pair should return 404."""
        response = client.get(CONVERT_URL, params={"amount": "10", "from": "USD", "to": "JPY"})

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "ExchangeRateNotFoundError"
        assert "USD" in data["message"]

    def test_invalid_currency(self, client):
        response = client.get(CONVERT_URL, params={"amount": "10", "from": "US", "to": "EUR"})

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "from"}

    def test_non_positive_amount(self, client):
        """Zero and negative amounts are rejected by request validation."""
        for amount in ("0", "-1"):
            response = client.get(CONVERT_URL, params={"amount": amount, "from": "USD", "to": "EUR"})
            assert response.status_code == 422

    def test_missing_parameter(self, client):
        response = client.get(CONVERT_URL, params={"amount": "10", "from": "USD"})

        assert response.status_code == 422
        fields = [detail["field"] for detail in response.json()["details"]]
        assert "query.to" in fields


# =============================================================================
# BEST RATE
# =============================================================================

class TestBestRate:

    def test_best_of_sources(self, client):
        """Best rate is the maximum across sources."""
        response = client.get(BEST_RATE_URL, params={"from": "USD", "to": "EUR"})

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["best_rate"]) == Decimal("0.87")
        assert set(data["sources"]) == {"source-a", "source-b"}
        assert data["available_sources"] == 2

    def test_nothing_is_cached(self, client, cache):
        """On-demand lookups bypass the cache."""
        client.get(BEST_RATE_URL, params={"from": "USD", "to": "EUR"})

        assert cache.get_rate("USD", "EUR") is None

    def test_unavailable_source_skipped(self, client, sources):
        sources[1].set_available(False)

        data = client.get(BEST_RATE_URL, params={"from": "USD", "to": "EUR"}).json()

        assert Decimal(data["best_rate"]) == Decimal("0.85")
        assert data["available_sources"] == 1

    def test_no_quote(self, client):
        response = client.get(BEST_RATE_URL, params={"from": "GBP", "to": "EUR"})

        assert response.status_code == 404


# =============================================================================
# HISTORY
# =============================================================================

class TestHistory:

    def test_returns_rates_in_range(self, client, rate_store):
        """History should return only rates inside [start, end], oldest first."""
        save_series(rate_store, ["0.84", "0.85", "0.86", "0.87"])

        response = client.get(HISTORY_URL, params={
            "from": "USD",
            "to": "EUR",
            "start": "2024-06-13T00:00:00Z",
            "end": "2024-06-16T00:00:00Z",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [Decimal(r["rate"]) for r in data["rates"]] == [
            Decimal("0.85"), Decimal("0.86"), Decimal("0.87"),
        ]
        assert data["rates"][0]["provider"] == "aggregated"

    def test_empty_range(self, client):
        response = client.get(HISTORY_URL, params={
            "from": "USD",
            "to": "EUR",
            "start": "2020-01-01T00:00:00Z",
            "end": "2020-01-02T00:00:00Z",
        })

        assert response.status_code == 200
        assert response.json()["rates"] == []
        assert response.json()["total"] == 0

    def test_start_after_end(self, client):
        """Inverted range should return 400."""
        response = client.get(HISTORY_URL, params={
            "from": "USD",
            "to": "EUR",
            "start": "2024-06-16T00:00:00Z",
            "end": "2024-06-13T00:00:00Z",
        })

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "start"}


# =============================================================================
# HISTORY BACKFILL
# =============================================================================

class TestHistoryBackfill:

    @pytest.fixture
    def sources(self) -> list[StaticRateSource]:
        """One source with two days of USD->EUR history before FIXED_NOW."""
        return [
            StaticRateSource("source-a", {}, history={
                date(2024, 6, 13): {"USD": {"EUR": Decimal("0.84")}},
                date(2024, 6, 14): {"USD": {"EUR": Decimal("0.86")}},
            }),
        ]

    def test_backfill_then_read_history(self, client):
        response = client.post(BACKFILL_URL, params={"from": "USD", "to": "EUR", "days": 3})

        assert response.status_code == 200
        assert response.json() == {
            "base_currency": "USD",
            "target_currency": "EUR",
            "days": 3,
            "updated_count": 2,
        }
        history = client.get(HISTORY_URL, params={
            "from": "USD", "to": "EUR",
            "start": "2024-06-12T00:00:00Z", "end": "2024-06-15T00:00:00Z",
        }).json()
        assert [Decimal(r["rate"]) for r in history["rates"]] == [Decimal("0.84"), Decimal("0.86")]

    def test_backfilled_series_supports_trend(self, client):
        client.post(BACKFILL_URL, params={"from": "USD", "to": "EUR", "days": 3})

        response = client.get("/api/v1/currencies/trends", params={"from": "USD", "to": "EUR", "period": "3D"})

        assert response.status_code == 200
        assert response.json()["trend_percentage"] == "2.38"

    @pytest.mark.parametrize("days", ["0", "91", "x"])
    def test_days_out_of_range(self, client, days):
        response = client.post(BACKFILL_URL, params={"from": "USD", "to": "EUR", "days": days})

        assert response.status_code == 422

    def test_same_currency_rejected(self, client):
        response = client.post(BACKFILL_URL, params={"from": "USD", "to": "USD"})

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "to"}
