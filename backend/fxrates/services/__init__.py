# backend/fxrates/services/__init__.py
"""
Service layer for the exchange rate service.

Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions for validation and trend failures
- Report unknown rates as None, not as exceptions
- Receive their collaborators (sources, cache, store) through __init__

Architecture:
    services/
    ├── __init__.py             # This file - main exports
    ├── exceptions.py           # Domain exceptions
    ├── constants.py            # Business constants and defaults
    ├── circuit_breaker.py      # Per-source availability tracking
    ├── rate_sources/           # Upstream providers
    │   ├── base.py             # RateSource interface
    │   ├── http.py             # Fixer.io, ExchangeRatesAPI.io, mock providers
    │   └── static.py           # Fixed rate table
    ├── rate_aggregator.py      # Concurrent fan-out and best-rate selection
    ├── rate_cache.py           # Redis / in-process TTL cache
    ├── rate_store.py           # Durable observation series
    ├── rate_retrieval.py       # Cache-aside lookup
    ├── conversion_service.py   # Conversion and refresh cycle
    ├── trend_analyzer.py       # Period parsing and percentage change
    ├── currency_service.py     # Currency registry
    └── scheduler.py            # Periodic refresh
"""

from fxrates.services.conversion_service import ConversionResult, ConversionService
from fxrates.services.currency_service import CurrencyInfo, CurrencyService
from fxrates.services.exceptions import (
    CircuitBreakerOpen,
    ConflictError,
    CurrencyAlreadyExistsError,
    CurrencyNotFoundError,
    ExchangeRateNotFoundError,
    InsufficientHistoryError,
    InvalidCurrencyError,
    InvalidPeriodFormatError,
    NotFoundError,
    PeriodBelowMinimumError,
    RateSourceError,
    RefreshError,
    ServiceError,
    SourceUnavailableError,
    ValidationError,
)
from fxrates.services.rate_aggregator import RateAggregator, select_best_rate
from fxrates.services.rate_cache import InMemoryRateCache, RateCache, RedisRateCache
from fxrates.services.rate_retrieval import RateRetrieval
from fxrates.services.rate_sources import RateSource, StaticRateSource, build_rate_sources
from fxrates.services.rate_store import RateObservation, RateStore
from fxrates.services.scheduler import RateRefreshScheduler, RefreshRun
from fxrates.services.trend_analyzer import TrendAnalyzer, TrendResult, parse_period

__all__ = [
    # ==========================================================================
    # Services
    # ==========================================================================
    "ConversionService",
    "ConversionResult",
    "CurrencyService",
    "CurrencyInfo",
    "RateAggregator",
    "select_best_rate",
    "RateCache",
    "RedisRateCache",
    "InMemoryRateCache",
    "RateRetrieval",
    "RateSource",
    "StaticRateSource",
    "build_rate_sources",
    "RateStore",
    "RateObservation",
    "RateRefreshScheduler",
    "RefreshRun",
    "TrendAnalyzer",
    "TrendResult",
    "parse_period",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    "ServiceError",
    "ValidationError",
    "InvalidCurrencyError",
    "InvalidPeriodFormatError",
    "PeriodBelowMinimumError",
    "NotFoundError",
    "CurrencyNotFoundError",
    "ExchangeRateNotFoundError",
    "ConflictError",
    "CurrencyAlreadyExistsError",
    "InsufficientHistoryError",
    "RateSourceError",
    "SourceUnavailableError",
    "RefreshError",
    "CircuitBreakerOpen",
]
