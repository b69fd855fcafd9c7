# backend/fxrates/services/conversion_service.py
"""
Currency conversion and the rate refresh cycle.

This is the entry point the routers and the scheduler use for everything
that is not trend analysis.

Refresh cycle (refresh_rates):
    1. aggregate best rates from all sources
       - raises  -> RefreshError, nothing written, cache untouched
       - empty   -> return 0, nothing written, cache untouched
    2. persist one observation per (base, target), all in one transaction
    3. evict the whole cache
    4. repopulate the cache from the map built in step 1, rounded to the
       stored precision so cache hits and database fallbacks agree

Steps 2-4 run strictly in that order, so a stale bucket is never served
after a refresh completes.

History backfill (backfill_history) only writes observations for days
before today and never touches the cache.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from fxrates.services.constants import (
    AGGREGATED_PROVIDER,
    CURRENCY_PRECISION,
    MAX_BACKFILL_DAYS,
    RATE_PRECISION,
)
from fxrates.services.exceptions import RefreshError, ValidationError
from fxrates.services.rate_aggregator import RateAggregator
from fxrates.services.rate_cache import RateCache
from fxrates.services.rate_retrieval import RateRetrieval
from fxrates.services.rate_store import RateObservation, RateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionResult:
    """A completed conversion, as returned to the HTTP layer."""
    from_currency: str
    to_currency: str
    amount: Decimal
    converted_amount: Decimal
    rate: Decimal
    timestamp: datetime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_stored_precision(best_rates: dict[str, dict[str, Decimal]]) -> dict[str, dict[str, Decimal]]:
    """
    Round every rate to the stored 6 decimals (half-up).

    The same rounded map is persisted and cached, so a cache hit and a
    database fallback return the same rate. Rates that round to zero are dropped.
    """
    rounded: dict[str, dict[str, Decimal]] = {}
    for base, rates in best_rates.items():
        for target, rate in rates.items():
            value = rate.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
            if value > 0:
                rounded.setdefault(base, {})[target] = value
            else:
                logger.warning(f"Dropping {base}->{target} rate {rate}: below stored precision")
    return rounded


class ConversionService:
    """
    Public-facing orchestration over aggregation, retrieval and storage.

    "Not found" is a value here, not an exception: convert() and best_rate()
    return None when no rate is known.
    """

    def __init__(
            self,
            aggregator: RateAggregator,
            retrieval: RateRetrieval,
            store: RateStore,
            cache: RateCache,
            clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._aggregator = aggregator
        self._retrieval = retrieval
        self._store = store
        self._cache = cache
        self._clock = clock

    # =========================================================================
    # CONVERSION
    # =========================================================================

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal | None:
        """
        Convert an amount between two currencies.

        Identity conversions return the amount unchanged without any lookup.
        Otherwise the result is rounded to 2 decimal places, half-up.

        Returns:
            Converted amount, or None if no rate is known for the pair
        """
        result = self.convert_with_details(amount, from_currency, to_currency)
        return result.converted_amount if result else None

    def convert_with_details(
            self,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
    ) -> ConversionResult | None:
        """Same as convert(), also reporting the rate that was applied."""
        source = from_currency.strip().upper()
        target = to_currency.strip().upper()

        if source == target:
            return ConversionResult(source, target, amount, amount, Decimal("1"), self._clock())

        rate = self._retrieval.get_rate(source, target)
        if rate is None:
            logger.info(f"Cannot convert {source}->{target}: rate unknown")
            return None

        converted = (amount * rate).quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)
        return ConversionResult(source, target, amount, converted, rate, self._clock())

    # =========================================================================
    # REFRESH
    # =========================================================================

    def refresh_rates(self) -> int:
        """
        Run a full refresh cycle.

        Returns:
            Number of observations persisted (0 when no source had data)

        Raises:
            RefreshError: If aggregation itself failed; no state was changed
        """
        logger.info("Starting exchange rate refresh")

        try:
            best_rates = self._aggregator.aggregate_best_rates()
        except Exception as e:
            logger.error(f"Exchange rate aggregation failed: {e}")
            raise RefreshError(str(e)) from e

        best_rates = _to_stored_precision(best_rates)
        if not best_rates:
            logger.warning("Refresh produced no rates; nothing persisted")
            return 0

        timestamp = self._clock()
        observations = [
            RateObservation(
                base_currency=base,
                target_currency=target,
                rate=rate,
                timestamp=timestamp,
                source_name=AGGREGATED_PROVIDER,
            )
            for base, rates in best_rates.items()
            for target, rate in rates.items()
        ]

        count = self._store.save_all(observations)

        self._cache.evict_all()
        self._cache.store_best_rates(best_rates)

        logger.info(f"Exchange rate refresh complete: {count} rates updated")
        return count

    # =========================================================================
    # ON-DEMAND / HISTORY
    # =========================================================================

    def best_rate(self, base_currency: str, target_currency: str) -> Decimal | None:
        """
        Best live quote across sources, bypassing cache and database.

        Nothing is cached or persisted.
        """
        best, _ = self.best_rate_with_sources(base_currency, target_currency)
        return best

    def best_rate_with_sources(
            self,
            base_currency: str,
            target_currency: str,
    ) -> tuple[Decimal | None, dict[str, Decimal]]:
        """best_rate() plus the per-source quotes it was chosen from."""
        quotes = self._aggregator.rates_for_pair(base_currency, target_currency)
        return self._aggregator.select_best(quotes.values()), quotes

    def available_sources_count(self) -> int:
        return self._aggregator.available_sources_count()

    def historical_rates(
            self,
            base_currency: str,
            target_currency: str,
            start: datetime,
            end: datetime,
    ) -> list[RateObservation]:
        """Observations recorded for a pair in [start, end], oldest first."""
        return self._store.find_rates_by_period(base_currency, target_currency, start, end)

    def backfill_history(self, base_currency: str, target_currency: str, days: int) -> int:
        """
        Fill in past daily observations for one pair from the sources' history.

        Covers the `days` days before today (UTC), oldest first. Each day's
        best historical quote is stored at midnight UTC as an aggregated
        observation. Days that already hold an observation, or that no source
        can quote, are skipped. The cache only holds latest rates and is not
        touched.

        Returns:
            Number of observations persisted

        Raises:
            ValidationError: Same base and target, or days outside 1..MAX_BACKFILL_DAYS
        """
        base = base_currency.strip().upper()
        target = target_currency.strip().upper()
        if base == target:
            raise ValidationError("Base and target currencies must differ", field="to")
        if not 1 <= days <= MAX_BACKFILL_DAYS:
            raise ValidationError(f"days must be between 1 and {MAX_BACKFILL_DAYS}", field="days")

        today = self._clock().astimezone(timezone.utc).date()
        observations: list[RateObservation] = []

        for offset in range(days, 0, -1):
            day = today - timedelta(days=offset)
            day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
            day_end = day_start + timedelta(days=1) - timedelta(microseconds=1)
            if self._store.find_rates_by_period(base, target, day_start, day_end):
                continue

            quotes = self._aggregator.historical_rates_for_pair(base, target, day)
            best = self._aggregator.select_best(quotes.values())
            rate = best.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP) if best is not None else None
            if rate is None or rate <= 0:
                logger.info(f"No historical rate for {base}->{target} on {day}")
                continue

            observations.append(RateObservation(
                base_currency=base,
                target_currency=target,
                rate=rate,
                timestamp=day_start,
                source_name=AGGREGATED_PROVIDER,
            ))

        if not observations:
            return 0

        count = self._store.save_all(observations)
        logger.info(f"Backfilled {count} daily rates for {base}->{target} over {days} days")
        return count
