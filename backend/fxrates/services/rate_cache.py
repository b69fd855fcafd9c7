# backend/fxrates/services/rate_cache.py
"""
Cache-aside store for the latest best rates.

Logical shape: {base: {target: rate}}, one bucket per base currency, each
bucket with its own TTL starting at write time. A present entry is never
older than the TTL; absence means "unknown", never zero.

Two backends:
- RedisRateCache: shared Redis hash per base ("rates:USD" -> {"EUR": "0.85"})
  with EXPIRE on the key. Used whenever REDIS_URL is configured.
- InMemoryRateCache: process-local dict guarded by a lock. Used for local
  development and tests.

The cache is an optimization only. Backend errors are logged and reported
as "not found" (reads) or silently dropped (writes); they never reach the
caller.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Callable

import redis

from fxrates.services.constants import DEFAULT_RATE_CACHE_TTL_SECONDS, RATE_CACHE_KEY_PREFIX

logger = logging.getLogger(__name__)


# Full rate table: {base: {target: rate}}
RateTable = dict[str, dict[str, Decimal]]


class RateCache(ABC):
    """Interface shared by all rate cache backends."""

    def __init__(self, ttl_seconds: int = DEFAULT_RATE_CACHE_TTL_SECONDS) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @abstractmethod
    def store_rates(self, base_currency: str, rates: Mapping[str, Decimal]) -> None:
        """Replace the whole bucket for a base currency and restart its TTL."""
        pass

    @abstractmethod
    def store_rate(self, base_currency: str, target_currency: str, rate: Decimal) -> None:
        """
        Write a single rate into a bucket.

        An existing bucket keeps its remaining TTL; a missing bucket is
        created with a fresh TTL.
        """
        pass

    def store_best_rates(self, best_rates: Mapping[str, Mapping[str, Decimal]]) -> None:
        """Store a full rate table, one bucket per base."""
        for base_currency, rates in best_rates.items():
            self.store_rates(base_currency, rates)
        logger.info(f"Cached best rates for {len(best_rates)} base currencies")

    @abstractmethod
    def get_rate(self, base_currency: str, target_currency: str) -> Decimal | None:
        """Cached rate, or None on miss or expiry."""
        pass

    @abstractmethod
    def get_all_rates(self, base_currency: str) -> dict[str, Decimal]:
        """All cached rates for a base, or an empty dict on miss."""
        pass

    @abstractmethod
    def get_all_cached_rates(self) -> RateTable:
        """Every live bucket."""
        pass

    @abstractmethod
    def evict_all(self) -> None:
        pass

    @abstractmethod
    def evict_rates(self, base_currency: str) -> None:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Liveness probe; never raises."""
        pass


# =============================================================================
# REDIS BACKEND
# =============================================================================


class RedisRateCache(RateCache):
    """
    Redis-backed rate cache.

    Rates are stored as strings so Decimal values round-trip exactly.

    Example:
        client = redis.Redis.from_url("redis://localhost:6379/0", decode_responses=True)
        cache = RedisRateCache(client)
        cache.store_rates("USD", {"EUR": Decimal("0.85")})
        cache.get_rate("USD", "EUR")   # Decimal("0.85")
    """

    def __init__(
            self,
            client: redis.Redis,
            ttl_seconds: int = DEFAULT_RATE_CACHE_TTL_SECONDS,
            key_prefix: str = RATE_CACHE_KEY_PREFIX,
    ) -> None:
        super().__init__(ttl_seconds)
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(
            cls,
            url: str,
            ttl_seconds: int = DEFAULT_RATE_CACHE_TTL_SECONDS,
            socket_timeout: float = 2.0,
    ) -> "RedisRateCache":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, ttl_seconds=ttl_seconds)

    def _key(self, base_currency: str) -> str:
        return f"{self._prefix}{base_currency.upper()}"

    def store_rates(self, base_currency: str, rates: Mapping[str, Decimal]) -> None:
        key = self._key(base_currency)
        mapping = {target.upper(): str(rate) for target, rate in rates.items()}

        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(key)
            if mapping:
                pipe.hset(key, mapping=mapping)
                pipe.expire(key, self._ttl_seconds)
            pipe.execute()
            logger.debug(f"Cached {len(mapping)} rates under {key}")
        except redis.RedisError as e:
            logger.warning(f"Failed to cache rates for {base_currency}: {e}")

    def store_rate(self, base_currency: str, target_currency: str, rate: Decimal) -> None:
        key = self._key(base_currency)

        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(key, target_currency.upper(), str(rate))
            # NX: only a bucket created by this write gets a TTL
            pipe.expire(key, self._ttl_seconds, nx=True)
            pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Failed to cache rate {base_currency}->{target_currency}: {e}")

    def get_rate(self, base_currency: str, target_currency: str) -> Decimal | None:
        try:
            value = self._client.hget(self._key(base_currency), target_currency.upper())
        except redis.RedisError as e:
            logger.warning(f"Rate cache read failed for {base_currency}->{target_currency}: {e}")
            return None
        return _parse_decimal(value)

    def get_all_rates(self, base_currency: str) -> dict[str, Decimal]:
        try:
            raw = self._client.hgetall(self._key(base_currency))
        except redis.RedisError as e:
            logger.warning(f"Rate cache read failed for {base_currency}: {e}")
            return {}
        return _parse_bucket(raw)

    def get_all_cached_rates(self) -> RateTable:
        table: RateTable = {}
        try:
            for key in self._client.scan_iter(match=f"{self._prefix}*"):
                rates = _parse_bucket(self._client.hgetall(key))
                if rates:
                    table[key[len(self._prefix):]] = rates
        except redis.RedisError as e:
            logger.warning(f"Rate cache scan failed: {e}")
            return {}
        return table

    def evict_all(self) -> None:
        try:
            keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
            if keys:
                self._client.delete(*keys)
            logger.info(f"Evicted {len(keys)} cached rate buckets")
        except redis.RedisError as e:
            logger.warning(f"Failed to evict rate cache: {e}")

    def evict_rates(self, base_currency: str) -> None:
        try:
            self._client.delete(self._key(base_currency))
        except redis.RedisError as e:
            logger.warning(f"Failed to evict cached rates for {base_currency}: {e}")

    def is_available(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.debug(f"Rate cache unavailable: {e}")
            return False


def _parse_decimal(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except (InvalidOperation, ValueError):
        logger.warning(f"Ignoring corrupt cached rate: {value!r}")
        return None


def _parse_bucket(raw: Mapping[str, str] | None) -> dict[str, Decimal]:
    rates: dict[str, Decimal] = {}
    for target, value in (raw or {}).items():
        rate = _parse_decimal(value)
        if rate is not None:
            rates[target] = rate
    return rates


# =============================================================================
# IN-PROCESS BACKEND
# =============================================================================


class InMemoryRateCache(RateCache):
    """
    Thread-safe in-process rate cache with per-bucket TTL.

    Only suitable for a single worker process; use Redis when several
    processes must share one cache.
    """

    def __init__(
            self,
            ttl_seconds: int = DEFAULT_RATE_CACHE_TTL_SECONDS,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(ttl_seconds)
        self._clock = clock
        self._buckets: dict[str, tuple[float, dict[str, Decimal]]] = {}
        self._lock = threading.Lock()

    def _live_bucket(self, base: str) -> dict[str, Decimal] | None:
        """Must be called while holding the lock."""
        entry = self._buckets.get(base)
        if entry is None:
            return None
        expires_at, rates = entry
        if self._clock() >= expires_at:
            del self._buckets[base]
            logger.debug(f"Cached rates expired for {base}")
            return None
        return rates

    def store_rates(self, base_currency: str, rates: Mapping[str, Decimal]) -> None:
        base = base_currency.upper()
        bucket = {target.upper(): rate for target, rate in rates.items()}
        with self._lock:
            if bucket:
                self._buckets[base] = (self._clock() + self._ttl_seconds, bucket)
            else:
                self._buckets.pop(base, None)

    def store_rate(self, base_currency: str, target_currency: str, rate: Decimal) -> None:
        base = base_currency.upper()
        with self._lock:
            if self._live_bucket(base) is None:
                self._buckets[base] = (self._clock() + self._ttl_seconds, {})
            self._buckets[base][1][target_currency.upper()] = rate

    def get_rate(self, base_currency: str, target_currency: str) -> Decimal | None:
        with self._lock:
            rates = self._live_bucket(base_currency.upper())
            return rates.get(target_currency.upper()) if rates else None

    def get_all_rates(self, base_currency: str) -> dict[str, Decimal]:
        with self._lock:
            rates = self._live_bucket(base_currency.upper())
            return dict(rates) if rates else {}

    def get_all_cached_rates(self) -> RateTable:
        with self._lock:
            table: RateTable = {}
            for base in list(self._buckets):
                rates = self._live_bucket(base)
                if rates:
                    table[base] = dict(rates)
            return table

    def evict_all(self) -> None:
        with self._lock:
            count = len(self._buckets)
            self._buckets.clear()
        logger.info(f"Evicted {count} cached rate buckets")

    def evict_rates(self, base_currency: str) -> None:
        with self._lock:
            self._buckets.pop(base_currency.upper(), None)

    def is_available(self) -> bool:
        return True
