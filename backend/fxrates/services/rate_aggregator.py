# backend/fxrates/services/rate_aggregator.py
"""
Concurrent multi-source rate aggregation.

Fans a base currency out to every configured RateSource on a bounded
thread pool, waits for every dispatched call to finish (or time out), then
reduces the per-source snapshots into one best rate per target currency.

Isolation guarantees:
- A source reported unavailable is skipped without being called
- An exception, timeout, None or empty result from one source only removes
  that source from the current call; siblings are unaffected
- Each worker builds its own snapshot; snapshots are merged only after all
  calls for the base have completed
- Nothing here writes to the store or the cache

Best-rate policy:
    select_best_rate() is the single place that decides which of several
    source values wins. It currently picks the maximum (most units of the
    target currency per unit of base).
"""

import contextvars
import logging
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import date
from decimal import Decimal
from typing import Callable, TypeVar

from fxrates.services.constants import DEFAULT_AGGREGATOR_MAX_WORKERS, DEFAULT_SOURCE_TIMEOUT_SECONDS
from fxrates.services.rate_sources.base import RateSource, SourceRates

logger = logging.getLogger(__name__)


# Slack on top of the per-source timeout before a worker is abandoned
_WAIT_GRACE_SECONDS = 2.0

T = TypeVar("T")


def select_best_rate(rates: Iterable[Decimal]) -> Decimal | None:
    """
    Pick the best of several quotes for one pair.

    Returns:
        The maximum rate, or None if there are no quotes
    """
    best: Decimal | None = None
    for rate in rates:
        if best is None or rate > best:
            best = rate
    return best


class RateAggregator:
    """
    Queries all rate sources concurrently and reduces to best rates.

    Example:
        aggregator = RateAggregator(sources, currency_codes=lambda: ["USD", "EUR"])
        aggregator.rates_for_pair("USD", "EUR")
        # {"fixer.io": Decimal("0.85"), "exchangeratesapi.io": Decimal("0.87")}
        aggregator.aggregate_best_rates()
        # {"USD": {"EUR": Decimal("0.87")}, "EUR": {"USD": Decimal("1.17")}}
    """

    def __init__(
            self,
            sources: Iterable[RateSource],
            currency_codes: Callable[[], Iterable[str]],
            max_workers: int = DEFAULT_AGGREGATOR_MAX_WORKERS,
            source_timeout: float = DEFAULT_SOURCE_TIMEOUT_SECONDS,
            selector: Callable[[Iterable[Decimal]], Decimal | None] = select_best_rate,
    ) -> None:
        """
        Args:
            sources: Ordered rate sources, fixed for the aggregator's lifetime
            currency_codes: Returns the currently tracked currency codes; used
                as base currencies and to filter target currencies
            max_workers: Size of the worker pool
            source_timeout: Seconds a single source call may take
            selector: Reduces several quotes for one pair to the best one
        """
        self._sources: tuple[RateSource, ...] = tuple(sources)
        self._currency_codes = currency_codes
        self._source_timeout = source_timeout
        self._selector = selector
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="rate-source",
        )

    @property
    def sources(self) -> tuple[RateSource, ...]:
        return self._sources

    def available_sources_count(self) -> int:
        """Number of sources currently reporting themselves available."""
        return sum(1 for source in self._sources if self._is_available(source))

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    def rates_for_pair(self, base_currency: str, target_currency: str) -> dict[str, Decimal]:
        """
        Quote for one pair from every source that has it.

        Returns:
            {source_name: rate}; empty when no source contributes
        """
        base = base_currency.strip().upper()
        target = target_currency.strip().upper()

        result: dict[str, Decimal] = {}
        for source_name, rates in self._fetch_from_sources(base):
            rate = rates.get(target)
            if rate is not None:
                result[source_name] = rate

        logger.debug(f"Rates for {base}->{target} from {len(result)} source(s)")
        return result

    def historical_rates_for_pair(
            self,
            base_currency: str,
            target_currency: str,
            day: date,
    ) -> dict[str, Decimal]:
        """
        Quote for one pair on a past day from every source that keeps history.

        Same isolation as rates_for_pair(): a failing or silent source is left out.

        Returns:
            {source_name: rate}; empty when no source has the day
        """
        base = base_currency.strip().upper()
        target = target_currency.strip().upper()

        result = dict(self._fan_out(
            lambda source: source.fetch_historical_rate(base, target, day),
            f"{base}->{target} on {day.isoformat()}",
        ))
        logger.debug(f"Historical rates for {base}->{target} on {day} from {len(result)} source(s)")
        return result

    def best_rate(self, base_currency: str, target_currency: str) -> Decimal | None:
        """Best quote across sources for one pair, or None."""
        return self.select_best(self.rates_for_pair(base_currency, target_currency).values())

    def select_best(self, quotes: Iterable[Decimal]) -> Decimal | None:
        """Apply the configured best-rate policy to a set of quotes."""
        return self._selector(quotes)

    def aggregate_best_rates(self) -> dict[str, dict[str, Decimal]]:
        """
        Best rate for every tracked (base, target) pair.

        Targets are restricted to tracked currencies. Bases for which no
        source contributed are left out.

        Returns:
            {base: {target: best_rate}}
        """
        codes = [code.upper() for code in self._currency_codes()]
        tracked = set(codes)
        logger.info(
            f"Aggregating best rates for {len(codes)} base currencies "
            f"from {len(self._sources)} source(s)"
        )

        best_rates: dict[str, dict[str, Decimal]] = {}
        for base in codes:
            snapshots = [rates for _, rates in self._fetch_from_sources(base)]
            best = self._reduce(snapshots, base, tracked)
            if best:
                best_rates[base] = best
            else:
                logger.warning(f"No source returned rates for base {base}")

        total = sum(len(rates) for rates in best_rates.values())
        logger.info(f"Aggregated {total} best rates across {len(best_rates)} base currencies")
        return best_rates

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _reduce(
            self,
            snapshots: list[SourceRates],
            base: str,
            tracked: set[str],
    ) -> dict[str, Decimal]:
        candidates: dict[str, list[Decimal]] = {}
        for rates in snapshots:
            for target, rate in rates.items():
                if target == base or target not in tracked:
                    continue
                candidates.setdefault(target, []).append(rate)

        best: dict[str, Decimal] = {}
        for target, quotes in candidates.items():
            rate = self._selector(quotes)
            if rate is not None:
                best[target] = rate
        return best

    def _fetch_from_sources(self, base: str) -> list[tuple[str, SourceRates]]:
        """
        Call every available source for one base and wait for all of them.

        Returns:
            (source_name, rates) for each source that produced a non-empty map
        """
        results = self._fan_out(lambda source: source.fetch_latest_rates(base), f"base {base}")
        return [(name, dict(rates)) for name, rates in results]

    def _fan_out(self, call: Callable[[RateSource], T | None], subject: str) -> list[tuple[str, T]]:
        """
        Run `call` against every available source on the pool.

        Unavailable sources are not called. Exceptions, timeouts and empty
        answers drop the source. Results keep the configured source order.
        """
        futures: dict[Future, RateSource] = {}
        for source in self._sources:
            if not self._is_available(source):
                logger.info(f"Skipping unavailable rate source: {source.name}")
                continue
            # Each worker runs in a copy of the caller's context (correlation id)
            context = contextvars.copy_context()
            futures[self._executor.submit(context.run, call, source)] = source

        if not futures:
            return []

        done, not_done = wait(futures, timeout=self._source_timeout + _WAIT_GRACE_SECONDS)

        for future in not_done:
            future.cancel()
            logger.warning(
                f"Rate source {futures[future].name} timed out for {subject} "
                f"after {self._source_timeout}s"
            )

        results: list[tuple[str, T]] = []
        for future, source in futures.items():
            if future not in done:
                continue
            try:
                value = future.result()
            except Exception as e:
                logger.warning(f"Rate source {source.name} failed for {subject}: {e}")
                continue
            if not value:
                logger.info(f"Rate source {source.name} returned no rates for {subject}")
                continue
            results.append((source.name, value))

        return results

    @staticmethod
    def _is_available(source: RateSource) -> bool:
        try:
            return source.is_available()
        except Exception as e:
            logger.warning(f"Availability check failed for rate source {source.name}: {e}")
            return False
