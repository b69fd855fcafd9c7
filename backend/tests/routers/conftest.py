# backend/tests/routers/conftest.py
"""
API test fixtures.

Every service dependency is overridden with an instance wired to the
per-test SQLite database, an in-memory cache and static rate sources.
The application lifespan (seeding, scheduler) is not run.
"""

from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from fxrates.dependencies import (
    get_conversion_service,
    get_currency_service,
    get_rate_cache,
    get_refresh_scheduler,
    get_trend_analyzer,
)
from fxrates.main import app
from fxrates.services.conversion_service import ConversionService
from fxrates.services.currency_service import CurrencyService
from fxrates.services.rate_aggregator import RateAggregator
from fxrates.services.rate_sources.static import StaticRateSource
from fxrates.services.scheduler import RateRefreshScheduler
from fxrates.services.trend_analyzer import TrendAnalyzer
from tests.conftest import FIXED_NOW


@pytest.fixture
def currency_service(session_factory) -> CurrencyService:
    service = CurrencyService(session_factory)
    service.seed_currencies(["USD", "EUR", "GBP"])
    return service


@pytest.fixture
def sources() -> list[StaticRateSource]:
    return [
        StaticRateSource("source-a", {
            "USD": {"EUR": Decimal("0.85"), "GBP": Decimal("0.74")},
            "EUR": {"USD": Decimal("1.17")},
            "CAD": {"USD": Decimal("0.73")},
        }),
        StaticRateSource("source-b", {
            "USD": {"EUR": Decimal("0.87"), "GBP": Decimal("0.75")},
        }),
    ]


@pytest.fixture
def aggregator(sources, currency_service) -> Iterator[RateAggregator]:
    """Aggregates over the registered currencies, like the real wiring."""
    aggregator = RateAggregator(sources, currency_codes=currency_service.tracked_codes)
    yield aggregator
    aggregator.shutdown()


@pytest.fixture
def conversion_service(aggregator, retrieval, rate_store, cache) -> ConversionService:
    return ConversionService(
        aggregator=aggregator,
        retrieval=retrieval,
        store=rate_store,
        cache=cache,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def refresh_scheduler(conversion_service) -> Iterator[RateRefreshScheduler]:
    """Never started; manual refreshes run through it in the request thread."""
    scheduler = RateRefreshScheduler(conversion_service)
    yield scheduler
    scheduler.shutdown()


@pytest.fixture
def trend_analyzer(rate_store) -> TrendAnalyzer:
    return TrendAnalyzer(rate_store, min_hours=12, clock=lambda: FIXED_NOW)


@pytest.fixture
def client(currency_service, conversion_service, refresh_scheduler, trend_analyzer, cache) -> Iterator[TestClient]:
    """TestClient with all service dependencies overridden."""
    app.dependency_overrides[get_currency_service] = lambda: currency_service
    app.dependency_overrides[get_conversion_service] = lambda: conversion_service
    app.dependency_overrides[get_refresh_scheduler] = lambda: refresh_scheduler
    app.dependency_overrides[get_trend_analyzer] = lambda: trend_analyzer
    app.dependency_overrides[get_rate_cache] = lambda: cache

    yield TestClient(app)

    app.dependency_overrides.clear()
