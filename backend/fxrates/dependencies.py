# backend/fxrates/dependencies.py
"""
Dependency injection for FastAPI routes.

Every service is a process-wide singleton built lazily on first use, so
the rate sources (and their circuit breakers), the cache client and the
aggregator's worker pool are shared by all requests and by the refresh
scheduler.

Order matters: define dependencies before dependents
1. get_currency_service, get_rate_store, get_rate_cache (no deps)
2. get_rate_sources (settings only)
3. get_rate_aggregator (sources, currency registry)
4. get_rate_retrieval (cache, store)
5. get_conversion_service (aggregator, retrieval, store, cache)
6. get_trend_analyzer (store)
7. get_refresh_scheduler (conversion service)

Tests override these with app.dependency_overrides.

Usage in routers:
    @router.get("/exchange-rates")
    def convert(service: ConversionService = Depends(get_conversion_service)):
        ...
"""

import logging
from functools import lru_cache

from fxrates.config import settings
from fxrates.database import SessionLocal
from fxrates.services.conversion_service import ConversionService
from fxrates.services.currency_service import CurrencyService
from fxrates.services.rate_aggregator import RateAggregator
from fxrates.services.rate_cache import InMemoryRateCache, RateCache, RedisRateCache
from fxrates.services.rate_retrieval import RateRetrieval
from fxrates.services.rate_sources import RateSource, build_rate_sources
from fxrates.services.rate_store import RateStore
from fxrates.services.scheduler import RateRefreshScheduler
from fxrates.services.trend_analyzer import TrendAnalyzer

logger = logging.getLogger(__name__)


# =============================================================================
# STORAGE
# =============================================================================


@lru_cache(maxsize=1)
def get_currency_service() -> CurrencyService:
    logger.debug("Initializing singleton CurrencyService")
    return CurrencyService(SessionLocal)


@lru_cache(maxsize=1)
def get_rate_store() -> RateStore:
    logger.debug("Initializing singleton RateStore")
    return RateStore(SessionLocal)


@lru_cache(maxsize=1)
def get_rate_cache() -> RateCache:
    """
    Redis when REDIS_URL is set, otherwise an in-process cache.

    An unreachable Redis does not stop startup; the cache reports itself
    unavailable and lookups fall through to the database.
    """
    if settings.is_redis_configured:
        logger.info("Using Redis rate cache")
        return RedisRateCache.from_url(
            settings.redis_url,
            ttl_seconds=settings.rate_cache_ttl_seconds,
            socket_timeout=settings.redis_socket_timeout,
        )

    logger.info("REDIS_URL not set, using in-process rate cache")
    return InMemoryRateCache(ttl_seconds=settings.rate_cache_ttl_seconds)


# =============================================================================
# AGGREGATION
# =============================================================================


@lru_cache(maxsize=1)
def get_rate_sources() -> tuple[RateSource, ...]:
    sources = tuple(build_rate_sources(settings))
    logger.info(f"Configured rate sources: {[source.name for source in sources]}")
    return sources


@lru_cache(maxsize=1)
def get_rate_aggregator() -> RateAggregator:
    logger.debug("Initializing singleton RateAggregator")
    return RateAggregator(
        sources=get_rate_sources(),
        currency_codes=get_currency_service().tracked_codes,
        max_workers=settings.aggregator_max_workers,
        source_timeout=settings.source_timeout_seconds,
    )


# =============================================================================
# PUBLIC SERVICES
# =============================================================================


@lru_cache(maxsize=1)
def get_rate_retrieval() -> RateRetrieval:
    return RateRetrieval(cache=get_rate_cache(), store=get_rate_store())


@lru_cache(maxsize=1)
def get_conversion_service() -> ConversionService:
    logger.debug("Initializing singleton ConversionService")
    return ConversionService(
        aggregator=get_rate_aggregator(),
        retrieval=get_rate_retrieval(),
        store=get_rate_store(),
        cache=get_rate_cache(),
    )


@lru_cache(maxsize=1)
def get_trend_analyzer() -> TrendAnalyzer:
    logger.debug("Initializing singleton TrendAnalyzer")
    return TrendAnalyzer(store=get_rate_store(), min_hours=settings.trend_min_hours)


@lru_cache(maxsize=1)
def get_refresh_scheduler() -> RateRefreshScheduler:
    """
    The refresh scheduler, shared by the lifespan and POST /currencies/refresh.

    Started by the lifespan only when REFRESH_ENABLED; manual refreshes work
    either way.
    """
    logger.debug("Initializing singleton RateRefreshScheduler")
    return RateRefreshScheduler(get_conversion_service(), cron=settings.refresh_cron)
