# backend/fxrates/services/trend_analyzer.py
"""
Percentage change of a currency pair over a time window.

Period grammar:
    <positive integer><unit>, unit in H (hours), D (days), M (months),
    Y (years); case-insensitive, surrounding whitespace ignored.
    Hour periods must be at least 12H.

    Accepted: "12H", "24h", " 7D ", "3M", "1Y"
    Rejected: "6H" (below minimum), "10", "H12", "10DM", "invalid"

Calculation:
    window  = [now - period, now]   (months/years use calendar arithmetic)
    oldest  = observation with the earliest timestamp in the window
    newest  = observation with the latest timestamp in the window
    trend   = (newest - oldest) / oldest * 100, 2 decimals, half-up

Trend analysis reads only the durable store; the cache keeps no history.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable

from fxrates.services.constants import (
    DISPLAY_PERCENTAGE_PRECISION,
    HUNDRED,
    MIN_TREND_DATA_POINTS,
    MIN_TREND_HOURS,
    ZERO,
)
from fxrates.services.exceptions import (
    InsufficientHistoryError,
    InvalidPeriodFormatError,
    PeriodBelowMinimumError,
)
from fxrates.services.rate_store import RateStore
from fxrates.utils.date_utils import subtract_months, subtract_years, utc_now

logger = logging.getLogger(__name__)


_PERIOD_PATTERN = re.compile(r"^([0-9]+)([HDMY])\Z")


class PeriodUnit(str, Enum):
    HOURS = "H"
    DAYS = "D"
    MONTHS = "M"
    YEARS = "Y"


_UNIT_NOUNS = {
    PeriodUnit.HOURS: "hour",
    PeriodUnit.DAYS: "day",
    PeriodUnit.MONTHS: "month",
    PeriodUnit.YEARS: "year",
}

@dataclass(frozen=True)
class TrendPeriod:
    """A parsed period such as 7D."""
    value: int
    unit: PeriodUnit

    def __str__(self) -> str:
        return f"{self.value}{self.unit.value}"

    def describe(self) -> str:
        """Spelled-out period, e.g. "7 days" or "1 month"."""
        noun = _UNIT_NOUNS[self.unit]
        return f"{self.value} {noun}{'' if self.value == 1 else 's'}"

    def window_start(self, end: datetime) -> datetime:
        """Start of the window that ends at `end`."""
        if self.unit == PeriodUnit.HOURS:
            return end - timedelta(hours=self.value)
        if self.unit == PeriodUnit.DAYS:
            return end - timedelta(days=self.value)
        if self.unit == PeriodUnit.MONTHS:
            return subtract_months(end, self.value)
        return subtract_years(end, self.value)


@dataclass(frozen=True)
class TrendResult:
    """Outcome of a trend calculation, as returned to the HTTP layer."""
    base_currency: str
    target_currency: str
    period: str
    trend_percentage: Decimal
    description: str


def parse_period(period: str | None, min_hours: int = MIN_TREND_HOURS) -> TrendPeriod:
    """
    Parse a period specifier.

    Raises:
        InvalidPeriodFormatError: Empty or not <number><H|D|M|Y>, or zero
        PeriodBelowMinimumError: Hour period below min_hours
    """
    if period is None or not period.strip():
        raise InvalidPeriodFormatError(period, message="Period must not be empty")

    normalized = period.strip().upper()
    match = _PERIOD_PATTERN.match(normalized)
    if not match:
        raise InvalidPeriodFormatError(period)

    value = int(match.group(1))
    unit = PeriodUnit(match.group(2))

    if value <= 0:
        raise InvalidPeriodFormatError(period)

    if unit == PeriodUnit.HOURS and value < min_hours:
        raise PeriodBelowMinimumError(normalized, min_hours)

    return TrendPeriod(value=value, unit=unit)


def calculate_percentage_change(old_rate: Decimal, new_rate: Decimal) -> Decimal:
    """
    Signed percentage change from old_rate to new_rate.

    Example:
        >>> calculate_percentage_change(Decimal("1.10"), Decimal("1.20"))
        Decimal('9.09')
    """
    change = (new_rate - old_rate) / old_rate * HUNDRED
    rounded = change.quantize(DISPLAY_PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP)
    # A drop too small to show must not come back as -0.00
    if rounded == ZERO:
        return ZERO.quantize(DISPLAY_PERCENTAGE_PRECISION)
    return rounded


def describe_trend(base_currency: str, target_currency: str, period: TrendPeriod, trend: Decimal) -> str:
    """
    Human-readable wording; zero counts as appreciation.

    Example:
        "USD appreciated by 2.35% against EUR over the last 7 days"
    """
    direction = "appreciated" if trend >= ZERO else "depreciated"
    return (
        f"{base_currency} {direction} by {abs(trend)}% "
        f"against {target_currency} over the last {period.describe()}"
    )


class TrendAnalyzer:
    """Computes trends over the durable rate series."""

    def __init__(
            self,
            store: RateStore,
            min_hours: int = MIN_TREND_HOURS,
            clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._min_hours = min_hours
        self._clock = clock

    def is_valid_period(self, period: str | None) -> bool:
        """
        Same period checks as calculate_trend(), including the window range.

        Never raises and never queries the store.
        """
        try:
            self._window(period, self._clock())
        except InvalidPeriodFormatError:
            return False
        return True

    def calculate_trend(self, base_currency: str, target_currency: str, period: str | None) -> Decimal:
        """
        Percentage change of base against target over the period.

        Raises:
            InvalidPeriodFormatError: Period is empty or malformed (no query is run)
            PeriodBelowMinimumError: Hour period too short (no query is run)
            InsufficientHistoryError: Fewer than two observations in the window
        """
        base = base_currency.upper()
        target = target_currency.upper()

        end = self._clock()
        parsed, start = self._window(period, end)

        observations = self._store.find_rates_by_period(base, target, start, end)
        if len(observations) < MIN_TREND_DATA_POINTS:
            raise InsufficientHistoryError(base, target, len(observations))

        oldest = min(observations, key=lambda obs: obs.timestamp)
        newest = max(observations, key=lambda obs: obs.timestamp)

        trend = calculate_percentage_change(oldest.rate, newest.rate)
        logger.debug(
            f"Trend {base}->{target} over {parsed}: {oldest.rate} -> {newest.rate} = {trend}% "
            f"({len(observations)} points)"
        )
        return trend

    def _window(self, period: str | None, end: datetime) -> tuple[TrendPeriod, datetime]:
        """Parsed period and the start of its window ending at `end`."""
        parsed = parse_period(period, self._min_hours)
        try:
            return parsed, parsed.window_start(end)
        except (ValueError, OverflowError) as e:
            raise InvalidPeriodFormatError(period, message=f"Period '{period}' is out of range") from e

    def analyze(self, base_currency: str, target_currency: str, period: str) -> TrendResult:
        """calculate_trend() plus the normalized period and wording."""
        trend = self.calculate_trend(base_currency, target_currency, period)
        parsed = parse_period(period, self._min_hours)
        base = base_currency.upper()
        target = target_currency.upper()
        return TrendResult(
            base_currency=base,
            target_currency=target,
            period=str(parsed),
            trend_percentage=trend,
            description=describe_trend(base, target, parsed, trend),
        )
