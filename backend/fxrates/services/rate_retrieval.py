# backend/fxrates/services/rate_retrieval.py
"""
Cache-aside rate lookup.

Read path:
    1. RateCache            -> hit: return, the store is not touched
    2. RateStore (latest)   -> hit: write back to the cache if it is up
    3. Neither              -> None ("rate unknown", not an error)

The cache is only ever populated from the store here, never the reverse.
"""

import logging
from decimal import Decimal

from fxrates.services.rate_cache import RateCache
from fxrates.services.rate_store import RateStore

logger = logging.getLogger(__name__)


class RateRetrieval:
    """Two-tier rate lookup with database fallback and cache write-back."""

    def __init__(self, cache: RateCache, store: RateStore) -> None:
        self._cache = cache
        self._store = store

    def get_rate(self, base_currency: str, target_currency: str) -> Decimal | None:
        """
        Latest known rate for a pair.

        Returns:
            The rate, or None when neither the cache nor the store has it
        """
        base = base_currency.upper()
        target = target_currency.upper()

        cached = self._cache.get_rate(base, target)
        if cached is not None:
            logger.debug(f"Rate cache hit for {base}->{target}")
            return cached

        logger.debug(f"Rate cache miss for {base}->{target}, falling back to database")
        observation = self._store.find_latest_rate(base, target)
        if observation is None:
            logger.info(f"No rate recorded for {base}->{target}")
            return None

        self._write_back_rate(base, target, observation.rate)
        return observation.rate

    def get_all_rates(self, base_currency: str) -> dict[str, Decimal]:
        """
        All latest rates quoted from a base currency.

        Returns:
            {target: rate}; empty when nothing is known
        """
        base = base_currency.upper()

        cached = self._cache.get_all_rates(base)
        if cached:
            logger.debug(f"Rate cache hit for all rates of {base}")
            return cached

        rates = {
            obs.target_currency: obs.rate
            for obs in self._store.find_all_latest_rates()
            if obs.base_currency == base
        }

        if rates and self._cache.is_available():
            try:
                self._cache.store_rates(base, rates)
            except Exception as e:
                logger.warning(f"Cache write-back failed for {base}: {e}")

        return rates

    def is_rate_available(self, base_currency: str, target_currency: str) -> bool:
        return self.get_rate(base_currency, target_currency) is not None

    def _write_back_rate(self, base: str, target: str, rate: Decimal) -> None:
        if not self._cache.is_available():
            return
        try:
            self._cache.store_rate(base, target, rate)
            logger.debug(f"Wrote back {base}->{target} to the rate cache")
        except Exception as e:
            logger.warning(f"Cache write-back failed for {base}->{target}: {e}")
