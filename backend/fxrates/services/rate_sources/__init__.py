# backend/fxrates/services/rate_sources/__init__.py
"""
Upstream exchange rate sources.

The source list is explicit: build_rate_sources() turns settings into an
ordered list once, and that list is handed to the RateAggregator.
"""

import logging

from fxrates.config import Settings
from fxrates.services.rate_sources.base import RateSource, SourceRates, normalize_rates
from fxrates.services.rate_sources.http import (
    ExchangeratesApiRateSource,
    FixerRateSource,
    HttpRateSource,
    MockProviderRateSource,
)
from fxrates.services.rate_sources.static import StaticRateSource

logger = logging.getLogger(__name__)


def build_rate_sources(settings: Settings) -> list[RateSource]:
    """
    Create the configured rate sources, in a fixed order.

    Fixer.io first, then ExchangeRatesAPI.io, then mock providers in the
    order they are listed. Unconfigured sources are left out.
    """
    sources: list[RateSource] = []
    timeout = settings.source_timeout_seconds

    if settings.is_fixer_configured:
        sources.append(FixerRateSource(settings.fixer_api_url, settings.fixer_api_key, timeout=timeout))

    if settings.is_exchangerates_configured:
        sources.append(ExchangeratesApiRateSource(
            settings.exchangerates_api_url, settings.exchangerates_api_key, timeout=timeout,
        ))

    for index, url in enumerate(settings.mock_provider_urls, start=1):
        sources.append(MockProviderRateSource(f"mock-provider-{index}", url, timeout=timeout))

    if not sources:
        logger.warning("No rate sources configured; refresh will produce no rates")

    return sources


__all__ = [
    "RateSource",
    "SourceRates",
    "normalize_rates",
    "HttpRateSource",
    "FixerRateSource",
    "ExchangeratesApiRateSource",
    "MockProviderRateSource",
    "StaticRateSource",
    "build_rate_sources",
]
