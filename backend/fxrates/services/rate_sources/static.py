# backend/fxrates/services/rate_sources/static.py
"""Rate source serving a fixed rate table."""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal

from fxrates.services.rate_sources.base import RateSource, SourceRates, normalize_rates

RateTable = Mapping[str, Mapping[str, Decimal | str | float]]


def _normalize_table(table: RateTable) -> dict[str, SourceRates]:
    return {base.upper(): normalize_rates(rates, base) for base, rates in table.items()}


class StaticRateSource(RateSource):
    """
    Serves rates from an in-memory table: {base: {target: rate}}.

    Useful for local development without API keys and as a fallback source.
    Unknown base currencies yield an empty map. Historical rates come from
    an optional {day: table} map; days not in it have no rate.
    """

    def __init__(
            self,
            name: str,
            table: RateTable,
            available: bool = True,
            history: Mapping[date, RateTable] | None = None,
    ) -> None:
        self._name = name
        self._table = _normalize_table(table)
        self._history = {day: _normalize_table(rates) for day, rates in (history or {}).items()}
        self._available = available

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        self._available = available

    def fetch_latest_rates(self, base_currency: str) -> SourceRates:
        return dict(self._table.get(base_currency.strip().upper(), {}))

    def fetch_historical_rate(
            self,
            base_currency: str,
            target_currency: str,
            day: date,
    ) -> Decimal | None:
        table = self._history.get(day, {})
        return table.get(base_currency.strip().upper(), {}).get(target_currency.strip().upper())
