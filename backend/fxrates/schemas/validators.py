# backend/fxrates/schemas/validators.py
"""
Reusable validation functions for request parameters.

They raise ValueError so they can be used inside Pydantic validators as
well as called directly from routers (which turn the ValueError into a
ValidationError -> 400).

Usage:
    from fxrates.schemas.validators import validate_currency

    code = validate_currency("usd")   # "USD"
"""

import re
from datetime import datetime, timezone
from decimal import Decimal

from fxrates.utils.iso4217 import is_iso_currency

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")

# History queries may not span more than this many days
MAX_HISTORY_RANGE_DAYS = 366


# =============================================================================
# CURRENCY VALIDATION
# =============================================================================

def validate_currency(value: str | None) -> str:
    """
    Uppercase, trim and check a currency code against ISO 4217.

    Raises:
        ValueError: If the code is empty, not 3 letters or not an ISO code
    """
    if not value or not value.strip():
        raise ValueError("Currency cannot be empty")

    normalized = value.strip().upper()

    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid currency format: '{normalized}'. "
            "Currency must be a 3-letter ISO code (e.g., USD, EUR)"
        )

    if not is_iso_currency(normalized):
        raise ValueError(f"Unknown ISO 4217 currency code: '{normalized}'")

    return normalized


# =============================================================================
# AMOUNT VALIDATION
# =============================================================================

def validate_amount(value: Decimal) -> Decimal:
    """
    Raises:
        ValueError: If the amount is not a finite number greater than zero
    """
    if not value.is_finite() or value <= 0:
        raise ValueError("Amount must be greater than zero")
    return value


# =============================================================================
# DATE VALIDATION
# =============================================================================

def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_datetime_range(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """
    Check a history query range.

    Returns:
        (start, end) as UTC datetimes

    Raises:
        ValueError: If start is after end or the range is too long
    """
    start = ensure_utc(start)
    end = ensure_utc(end)

    if start > end:
        raise ValueError("start must be before or equal to end")

    if (end - start).days > MAX_HISTORY_RANGE_DAYS:
        raise ValueError(f"Date range cannot exceed {MAX_HISTORY_RANGE_DAYS} days")

    return start, end
