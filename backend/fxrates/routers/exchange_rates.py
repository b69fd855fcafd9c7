# backend/fxrates/routers/exchange_rates.py
"""
Exchange rate endpoints.

- GET  /currencies/exchange-rates?amount=&from=&to=   convert an amount
- POST /currencies/refresh                            refresh all rates now
- GET  /currencies/best-rate?from=&to=                live best quote
- GET  /currencies/history?from=&to=&start=&end=      stored observations
- POST /currencies/history/backfill?from=&to=&days=   fill past days from source history

Conversions read the cache first and fall back to the database; the
best-rate endpoint always asks the upstream sources.
"""

import logging
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request

from fxrates.dependencies import get_conversion_service, get_refresh_scheduler
from fxrates.middleware.rate_limit import RATE_LIMIT_DEFAULT, RATE_LIMIT_REFRESH, limiter
from fxrates.routers.params import currency_param
from fxrates.schemas.exchange_rates import (
    BestRateResponse,
    ConversionResponse,
    ExchangeRateHistoryResponse,
    ExchangeRateResponse,
    HistoryBackfillResponse,
    RefreshResponse,
)
from fxrates.schemas.validators import validate_datetime_range
from fxrates.services.constants import MAX_BACKFILL_DAYS
from fxrates.services.conversion_service import ConversionService
from fxrates.services.exceptions import ExchangeRateNotFoundError, ValidationError
from fxrates.services.scheduler import RateRefreshScheduler

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/currencies",
    tags=["Exchange Rates"],
)


@router.get(
    "/exchange-rates",
    response_model=ConversionResponse,
    summary="Convert an amount between currencies",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def convert_currency(
        request: Request,  # Required for rate limiting
        amount: Decimal = Query(..., gt=0, description="Amount to convert", examples=["100"]),
        from_currency: str = Query(..., alias="from", description="Base currency", examples=["USD"]),
        to_currency: str = Query(..., alias="to", description="Target currency", examples=["EUR"]),
        service: ConversionService = Depends(get_conversion_service),
) -> ConversionResponse:
    """
    Convert using the latest known rate.

    The converted amount is rounded to 2 decimal places (half-up).
    Converting a currency to itself always succeeds with rate 1.

    Raises **404** if no rate is known for the pair.
    """
    base = currency_param(from_currency, "from")
    target = currency_param(to_currency, "to")

    result = service.convert_with_details(amount, base, target)
    if result is None:
        raise ExchangeRateNotFoundError(base, target)

    return ConversionResponse(
        from_currency=result.from_currency,
        to_currency=result.to_currency,
        amount=result.amount,
        converted_amount=result.converted_amount,
        rate=result.rate,
        timestamp=result.timestamp,
    )


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh exchange rates from all sources",
)
@limiter.limit(RATE_LIMIT_REFRESH)
def refresh_rates(
        request: Request,  # Required for rate limiting
        scheduler: RateRefreshScheduler = Depends(get_refresh_scheduler),
) -> RefreshResponse:
    """
    Fetch, persist and cache the best rate for every registered pair.

    Runs synchronously; expect a few seconds per source. Raises **500**
    if aggregation fails, in which case nothing was changed. Waits for a
    scheduled refresh that is already running.
    """
    logger.info("POST /currencies/refresh")
    run = scheduler.trigger_now()
    return RefreshResponse(
        message="Exchange rates refreshed successfully",
        updated_count=run.updated_count,
        timestamp=run.started_at,
    )


@router.get(
    "/best-rate",
    response_model=BestRateResponse,
    summary="Best live rate across sources",
)
@limiter.limit(RATE_LIMIT_REFRESH)
def best_rate(
        request: Request,  # Required for rate limiting
        from_currency: str = Query(..., alias="from", examples=["USD"]),
        to_currency: str = Query(..., alias="to", examples=["EUR"]),
        service: ConversionService = Depends(get_conversion_service),
) -> BestRateResponse:
    """
    Ask every available source for the pair right now.

    Nothing is cached or stored. Raises **404** when no source quotes the pair.
    """
    base = currency_param(from_currency, "from")
    target = currency_param(to_currency, "to")

    best, quotes = service.best_rate_with_sources(base, target)
    if best is None:
        raise ExchangeRateNotFoundError(base, target)

    return BestRateResponse(
        base_currency=base,
        target_currency=target,
        best_rate=best,
        sources=quotes,
        available_sources=service.available_sources_count(),
    )


@router.get(
    "/history",
    response_model=ExchangeRateHistoryResponse,
    summary="Stored rates for a pair over a time range",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def rate_history(
        request: Request,  # Required for rate limiting
        from_currency: str = Query(..., alias="from", examples=["USD"]),
        to_currency: str = Query(..., alias="to", examples=["EUR"]),
        start: datetime = Query(..., description="Range start (ISO 8601, UTC if no offset)"),
        end: datetime = Query(..., description="Range end (ISO 8601, UTC if no offset)"),
        service: ConversionService = Depends(get_conversion_service),
) -> ExchangeRateHistoryResponse:
    """Observations ordered oldest first; an empty list when nothing was recorded."""
    base = currency_param(from_currency, "from")
    target = currency_param(to_currency, "to")

    try:
        start, end = validate_datetime_range(start, end)
    except ValueError as e:
        raise ValidationError(str(e), field="start") from e

    observations = service.historical_rates(base, target, start, end)
    return ExchangeRateHistoryResponse(
        base_currency=base,
        target_currency=target,
        start=start,
        end=end,
        rates=[ExchangeRateResponse.model_validate(obs) for obs in observations],
        total=len(observations),
    )


@router.post(
    "/history/backfill",
    response_model=HistoryBackfillResponse,
    summary="Fill in past daily rates from the sources' history",
)
@limiter.limit(RATE_LIMIT_REFRESH)
def backfill_history(
        request: Request,  # Required for rate limiting
        from_currency: str = Query(..., alias="from", examples=["USD"]),
        to_currency: str = Query(..., alias="to", examples=["EUR"]),
        days: int = Query(7, ge=1, le=MAX_BACKFILL_DAYS, description="Days before today to cover"),
        service: ConversionService = Depends(get_conversion_service),
) -> HistoryBackfillResponse:
    """
    Store one aggregated rate per day, at midnight UTC, for days with no observation.

    Gives trend analysis a series to work with on a fresh database. Days
    no source can quote are skipped. Raises **400** when from and to are
    the same currency.
    """
    base = currency_param(from_currency, "from")
    target = currency_param(to_currency, "to")

    count = service.backfill_history(base, target, days)
    return HistoryBackfillResponse(
        base_currency=base,
        target_currency=target,
        days=days,
        updated_count=count,
    )
