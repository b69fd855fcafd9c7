# backend/fxrates/routers/currencies.py
"""
Currency registry endpoints.

- GET  /currencies               list registered currencies
- POST /currencies?currency=XXX  register a currency (201, 409 if present)

Registered currencies are the ones every refresh fetches and stores.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status

from fxrates.dependencies import get_currency_service
from fxrates.middleware.rate_limit import RATE_LIMIT_DEFAULT, RATE_LIMIT_WRITE, limiter
from fxrates.routers.params import currency_param
from fxrates.schemas.currencies import CurrencyListResponse, CurrencyResponse
from fxrates.services.currency_service import CurrencyService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/currencies",
    tags=["Currencies"],
)


@router.get(
    "",
    response_model=CurrencyListResponse,
    summary="List registered currencies",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def list_currencies(
        request: Request,  # Required for rate limiting
        service: CurrencyService = Depends(get_currency_service),
) -> CurrencyListResponse:
    currencies = service.list_currencies()
    return CurrencyListResponse(
        currencies=[CurrencyResponse.model_validate(c) for c in currencies],
        total=len(currencies),
    )


@router.post(
    "",
    response_model=CurrencyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a currency",
)
@limiter.limit(RATE_LIMIT_WRITE)
def add_currency(
        request: Request,  # Required for rate limiting
        currency: str = Query(..., description="ISO 4217 code", examples=["CAD"]),
        name: str | None = Query(default=None, max_length=100, description="Display name"),
        service: CurrencyService = Depends(get_currency_service),
) -> CurrencyResponse:
    """
    Register a currency so that it is included in every refresh.

    Raises **400** for codes that are not ISO 4217 and **409** if the
    currency is already registered.
    """
    code = currency_param(currency, "currency")
    logger.info(f"POST /currencies?currency={code}")
    return CurrencyResponse.model_validate(service.add_currency(code, name))
