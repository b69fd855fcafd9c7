# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database fixtures (in-memory SQLite)
- Fake rate sources and caches
- Fixed clocks
- Sample data factories
"""

import os

# Must be set before fxrates.config is imported anywhere
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REFRESH_ENABLED", "false")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fxrates.models import Base, Currency
from fxrates.services.exceptions import SourceUnavailableError
from fxrates.services.rate_aggregator import RateAggregator
from fxrates.services.rate_cache import InMemoryRateCache
from fxrates.services.rate_retrieval import RateRetrieval
from fxrates.services.rate_sources.base import RateSource, SourceRates
from fxrates.services.rate_sources.static import StaticRateSource
from fxrates.services.rate_store import RateObservation, RateStore


FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    """Session factory bound to the test engine, as the services expect."""
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Iterator[Session]:
    """Create a database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def rate_store(session_factory) -> RateStore:
    return RateStore(session_factory)


# =============================================================================
# FAKE RATE SOURCES
# =============================================================================

class RecordingRateSource(RateSource):
    """
    Configurable fake source that records every call.

    Can be told to raise, return None or block before answering.
    """

    def __init__(
            self,
            name: str,
            table: dict[str, dict[str, Decimal]] | None = None,
            error: Exception | None = None,
            returns_none: bool = False,
            available: bool = True,
            delay: Callable[[], None] | None = None,
    ):
        self._name = name
        self._table = table or {}
        self._error = error
        self._returns_none = returns_none
        self._available = available
        self._delay = delay
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        self._available = available

    def fetch_latest_rates(self, base_currency: str) -> SourceRates | None:
        self.calls.append(base_currency)
        if self._delay:
            self._delay()
        if self._error:
            raise self._error
        if self._returns_none:
            return None
        return dict(self._table.get(base_currency, {}))

    def fetch_historical_rate(self, base_currency: str, target_currency: str, day: date) -> Decimal | None:
        self.calls.append(f"{base_currency}@{day.isoformat()}")
        if self._error:
            raise self._error
        return None


def failing_source(name: str = "broken") -> RecordingRateSource:
    """A source whose every fetch raises SourceUnavailableError."""
    return RecordingRateSource(name, error=SourceUnavailableError(name, "HTTP 500"))


def static_source(name: str, base: str, rates: dict[str, str]) -> StaticRateSource:
    """Single-base StaticRateSource from string rates."""
    return StaticRateSource(name, {base: {target: Decimal(rate) for target, rate in rates.items()}})


# =============================================================================
# CACHE / CLOCK FIXTURES
# =============================================================================

class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_clock) -> InMemoryRateCache:
    """Two-hour in-memory cache driven by the fake clock."""
    return InMemoryRateCache(ttl_seconds=7200, clock=fake_clock)


@pytest.fixture
def retrieval(cache, rate_store) -> RateRetrieval:
    return RateRetrieval(cache=cache, store=rate_store)


@pytest.fixture
def make_aggregator() -> Iterator[Callable[..., RateAggregator]]:
    """Factory for aggregators; all of them are shut down after the test."""
    created: list[RateAggregator] = []

    def _make(sources, codes=("USD", "EUR", "GBP"), **kwargs) -> RateAggregator:
        aggregator = RateAggregator(sources, currency_codes=lambda: list(codes), **kwargs)
        created.append(aggregator)
        return aggregator

    yield _make

    for aggregator in created:
        aggregator.shutdown()


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def create_observation(
        base: str = "USD",
        target: str = "EUR",
        rate: str = "0.85",
        timestamp: datetime = FIXED_NOW,
        source_name: str = "aggregated",
) -> RateObservation:
    """Factory function for creating RateObservation test data."""
    return RateObservation(
        base_currency=base,
        target_currency=target,
        rate=Decimal(rate),
        timestamp=timestamp,
        source_name=source_name,
    )


def save_series(
        store: RateStore,
        rates: list[str],
        base: str = "USD",
        target: str = "EUR",
        end: datetime = FIXED_NOW,
        step: timedelta = timedelta(days=1),
) -> None:
    """Save rates oldest first, the last one at `end`, spaced by `step`."""
    count = len(rates)
    for index, rate in enumerate(rates):
        timestamp = end - step * (count - 1 - index)
        store.save(create_observation(base, target, rate, timestamp))


def create_currency(db: Session, code: str = "USD", name: str = "US Dollar") -> Currency:
    """Factory function for creating Currency rows in the database."""
    currency = Currency(code=code, name=name)
    db.add(currency)
    db.commit()
    db.refresh(currency)
    return currency
