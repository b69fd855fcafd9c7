# backend/fxrates/schemas/__init__.py
"""
Pydantic schemas for API responses.

- currencies: Currency registry
- errors: Error response formats
- exchange_rates: Conversion, refresh, best rate and history
- trends: Trend analysis
- validators: Reusable parameter validation

Usage:
    from fxrates.schemas import ConversionResponse, TrendResponse
"""

from fxrates.schemas.currencies import CurrencyListResponse, CurrencyResponse
from fxrates.schemas.errors import ErrorDetail, ValidationErrorDetail
from fxrates.schemas.exchange_rates import (
    BestRateResponse,
    ConversionResponse,
    ExchangeRateHistoryResponse,
    ExchangeRateResponse,
    HistoryBackfillResponse,
    RefreshResponse,
)
from fxrates.schemas.trends import TrendResponse

__all__ = [
    # Currencies
    "CurrencyResponse",
    "CurrencyListResponse",
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Exchange rates
    "ConversionResponse",
    "RefreshResponse",
    "BestRateResponse",
    "ExchangeRateResponse",
    "ExchangeRateHistoryResponse",
    "HistoryBackfillResponse",
    # Trends
    "TrendResponse",
]
