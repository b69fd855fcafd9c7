# backend/fxrates/services/rate_sources/http.py
"""
HTTP rate sources.

All supported upstream APIs speak the same latest-rates dialect:

    GET {base_url}/latest?base=USD[&access_key=...]

    {
      "success": true,
      "base": "USD",
      "date": "2024-01-15",
      "rates": {"EUR": 0.85, "GBP": 0.75}
    }

Historical rates use the date as the path: GET {base_url}/2024-01-15?base=USD&symbols=EUR

Key features:
- One httpx.Client per source, with the per-call timeout configured on it
- Rates decoded straight into Decimal (no float round-trip)
- Availability reported by a per-source circuit breaker; every fetch feeds it
- Failures raise SourceUnavailableError; no retries
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

import httpx

from fxrates.services.circuit_breaker import CircuitBreaker
from fxrates.services.constants import (
    DEFAULT_SOURCE_TIMEOUT_SECONDS,
    SOURCE_FAILURE_THRESHOLD,
    SOURCE_RECOVERY_TIMEOUT,
)
from fxrates.services.exceptions import SourceUnavailableError
from fxrates.services.rate_sources.base import RateSource, SourceRates, normalize_rates

logger = logging.getLogger(__name__)


class HttpRateSource(RateSource):
    """
    Rate source backed by a JSON latest-rates endpoint.

    Subclasses set the endpoint paths and how the API key is passed.

    Example:
        source = FixerRateSource("https://data.fixer.io/api", api_key="...")
        rates = source.fetch_latest_rates("USD")   # {"EUR": Decimal("0.85"), ...}
    """

    LATEST_ENDPOINT: str = "/latest"
    HISTORICAL_ENDPOINT: str = "/{date}"
    API_KEY_PARAM: str | None = None

    def __init__(
            self,
            name: str,
            base_url: str,
            api_key: str | None = None,
            timeout: float = DEFAULT_SOURCE_TIMEOUT_SECONDS,
            client: httpx.Client | None = None,
            breaker: CircuitBreaker | None = None,
    ) -> None:
        """
        Initialize the source.

        Args:
            name: Provenance key for this source
            base_url: API root, without trailing slash
            api_key: Access key, sent as API_KEY_PARAM when set
            timeout: Timeout in seconds for every request
            client: Preconfigured httpx client (tests inject MockTransport here)
            breaker: Circuit breaker; one is created per source if omitted
        """
        self._name = name
        self._api_key = api_key
        self._timeout = timeout
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
        )
        self._breaker = breaker or CircuitBreaker(
            name=name,
            failure_threshold=SOURCE_FAILURE_THRESHOLD,
            recovery_timeout=SOURCE_RECOVERY_TIMEOUT,
        )
        logger.info(f"{type(self).__name__} '{name}' initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return self._name

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def is_available(self) -> bool:
        return self._breaker.allows_request()

    def fetch_latest_rates(self, base_currency: str) -> SourceRates:
        """
        Fetch the latest rates for a base currency.

        Raises:
            SourceUnavailableError: Network error, timeout, bad status or an
                error payload
            CircuitBreakerOpen: The source's circuit is open
        """
        base = base_currency.strip().upper()
        logger.debug(f"Fetching latest rates from {self.name} for base: {base}")

        with self._breaker:
            payload = self._get(self.LATEST_ENDPOINT, {"base": base})

        rates = normalize_rates(payload.get("rates"), base)
        logger.info(f"Fetched {len(rates)} rates from {self.name} for base {base}")
        return rates

    def fetch_historical_rate(
            self,
            base_currency: str,
            target_currency: str,
            day: date,
    ) -> Decimal | None:
        """
        Fetch one pair's rate for a past day.

        Returns:
            The rate, or None when the source has no rate for that pair/day

        Raises:
            SourceUnavailableError: Network error, timeout, bad status or an
                error payload
        """
        base = base_currency.strip().upper()
        target = target_currency.strip().upper()
        path = self.HISTORICAL_ENDPOINT.format(date=day.isoformat())

        with self._breaker:
            payload = self._get(path, {"base": base, "symbols": target})

        return normalize_rates(payload.get("rates"), base).get(target)

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        if self.API_KEY_PARAM and self._api_key:
            params = {**params, self.API_KEY_PARAM: self._api_key}

        try:
            response = self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise SourceUnavailableError(self.name, f"timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise SourceUnavailableError(self.name, f"network error: {e}") from e

        if response.status_code != 200:
            raise SourceUnavailableError(self.name, f"HTTP {response.status_code}")

        try:
            payload = response.json(parse_float=Decimal)
        except ValueError as e:
            raise SourceUnavailableError(self.name, "invalid JSON payload") from e

        if not isinstance(payload, dict):
            raise SourceUnavailableError(self.name, "unexpected payload shape")

        if payload.get("success") is False:
            error = payload.get("error") or {}
            reason = error.get("info") or error.get("type") or "request unsuccessful"
            raise SourceUnavailableError(self.name, str(reason))

        return payload


class FixerRateSource(HttpRateSource):
    """Fixer.io (https://fixer.io/documentation)."""

    API_KEY_PARAM = "access_key"

    def __init__(self, base_url: str, api_key: str, **kwargs: Any) -> None:
        super().__init__("fixer.io", base_url, api_key=api_key, **kwargs)


class ExchangeratesApiRateSource(HttpRateSource):
    """ExchangeRatesAPI.io (https://exchangeratesapi.io/documentation)."""

    API_KEY_PARAM = "access_key"

    def __init__(self, base_url: str, api_key: str, **kwargs: Any) -> None:
        super().__init__("exchangeratesapi.io", base_url, api_key=api_key, **kwargs)


class MockProviderRateSource(HttpRateSource):
    """Key-less mock provider service used in development and integration tests."""

    LATEST_ENDPOINT = "/v1/latest"
    HISTORICAL_ENDPOINT = "/v1/{date}"
