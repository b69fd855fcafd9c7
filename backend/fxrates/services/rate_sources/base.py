# backend/fxrates/services/rate_sources/base.py
"""
Abstract interface for upstream exchange rate sources.

Every provider (Fixer.io, ExchangeRatesAPI.io, mock services, fixed tables)
implements this contract and is handed to the RateAggregator as part of an
explicit, ordered list built once at startup.

Contract:
- name: stable identifier, used as the provenance key in aggregation results
- is_available(): fast and side-effect-free; consulted before every fetch
- fetch_latest_rates(base): {target: rate} for one base currency; may be
  empty or None; must enforce its own timeout; may raise (the aggregator
  catches and logs)
- fetch_historical_rate(base, target, day): optional; one pair for a past day,
  None when the source keeps no history (the default)
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from fxrates.services.constants import ZERO

logger = logging.getLogger(__name__)


# Snapshot of one source's rates for one base currency: {target: rate}
SourceRates = dict[str, Decimal]


class RateSource(ABC):
    """Abstract base class for upstream rate sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this source.

        Returns:
            Source name (e.g., "fixer.io", "exchangeratesapi.io")
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the source should be called at all right now."""
        pass

    @abstractmethod
    def fetch_latest_rates(self, base_currency: str) -> SourceRates | None:
        """
        Fetch the latest rates quoted against a base currency.

        Args:
            base_currency: Base currency code (e.g., "USD")

        Returns:
            Mapping of target currency code to rate, possibly empty
        """
        pass

    def fetch_historical_rate(
            self,
            base_currency: str,
            target_currency: str,
            day: date,
    ) -> Decimal | None:
        """One pair's rate for a past day. Sources without history return None."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def normalize_rates(raw: Mapping[str, Any] | None, base_currency: str | None = None) -> SourceRates:
    """
    Turn a raw rates payload into a clean {TARGET: Decimal} map.

    Drops entries whose value is missing, non-numeric or not strictly
    positive, and the identity entry for the base currency itself.

    Args:
        raw: Mapping of currency code to number/string, as decoded from JSON
        base_currency: Optional base code to exclude from the result

    Returns:
        Normalized rates (empty if raw is None or nothing survives)
    """
    if not raw:
        return {}

    base = base_currency.strip().upper() if base_currency else None
    rates: SourceRates = {}

    for code, value in raw.items():
        target = str(code).strip().upper()
        if not target or target == base or value is None:
            continue
        try:
            rate = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, ValueError):
            logger.debug(f"Skipping non-numeric rate for {target}: {value!r}")
            continue
        if not rate.is_finite() or rate <= ZERO:
            logger.debug(f"Skipping non-positive rate for {target}: {rate}")
            continue
        rates[target] = rate

    return rates
