# backend/fxrates/schemas/exchange_rates.py
"""
Pydantic schemas for exchange rate operations.

These schemas handle:
- Conversion results
- Refresh results
- On-demand best rates
- Historical rate series
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# CONVERSION
# =============================================================================

class ConversionResponse(BaseModel):
    """
    Result of converting an amount.

    Serialized with "from" / "to" keys.
    """

    from_currency: str = Field(..., alias="from", description="Base currency", examples=["USD"])
    to_currency: str = Field(..., alias="to", description="Target currency", examples=["EUR"])
    amount: Decimal = Field(..., description="Original amount", examples=["100.00"])
    converted_amount: Decimal = Field(..., description="Converted amount, 2 decimals", examples=["85.00"])
    rate: Decimal = Field(..., description="Rate applied (1 from = rate to)", examples=["0.85"])
    timestamp: dt.datetime = Field(..., description="When the conversion was made")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# REFRESH
# =============================================================================

class RefreshResponse(BaseModel):
    message: str
    updated_count: int = Field(..., description="Observations persisted by this refresh")
    timestamp: dt.datetime


# =============================================================================
# BEST RATE
# =============================================================================

class BestRateResponse(BaseModel):
    """Live best quote across all rate sources (not cached, not persisted)."""

    base_currency: str
    target_currency: str
    best_rate: Decimal
    sources: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Quote per contributing source"
    )
    available_sources: int = Field(..., description="Sources currently reporting available")


# =============================================================================
# HISTORY
# =============================================================================

class ExchangeRateResponse(BaseModel):
    """One stored rate observation."""

    id: int | None = None
    base_currency: str
    target_currency: str
    rate: Decimal
    timestamp: dt.datetime
    provider: str = Field(..., validation_alias="source_name", description="Source tag")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ExchangeRateHistoryResponse(BaseModel):
    base_currency: str
    target_currency: str
    start: dt.datetime
    end: dt.datetime
    rates: list[ExchangeRateResponse]
    total: int = Field(..., description="Number of observations in range")


class HistoryBackfillResponse(BaseModel):
    """Result of filling in past daily rates from the sources' history."""

    base_currency: str
    target_currency: str
    days: int = Field(..., description="Days before today that were covered")
    updated_count: int = Field(..., description="Daily observations persisted")
