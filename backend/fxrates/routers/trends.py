# backend/fxrates/routers/trends.py
"""
Trend analysis endpoint.

GET /currencies/trends?from=USD&to=EUR&period=7D

Period format: <number><H|D|M|Y>, at least 12H. A malformed period is
rejected with 400 before any data is read; fewer than two stored rates in
the window gives 404.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from fxrates.dependencies import get_trend_analyzer
from fxrates.middleware.rate_limit import RATE_LIMIT_DEFAULT, limiter
from fxrates.routers.params import currency_param
from fxrates.schemas.trends import TrendResponse
from fxrates.services.trend_analyzer import TrendAnalyzer

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/currencies/trends",
    tags=["Trends"],
)


@router.get(
    "",
    response_model=TrendResponse,
    summary="Percentage change of a currency pair over a period",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def analyze_trend(
        request: Request,  # Required for rate limiting
        from_currency: str = Query(..., alias="from", examples=["USD"]),
        to_currency: str = Query(..., alias="to", examples=["EUR"]),
        period: str = Query(..., description="e.g. 12H, 10D, 3M, 1Y", examples=["7D"]),
        analyzer: TrendAnalyzer = Depends(get_trend_analyzer),
) -> TrendResponse:
    base = currency_param(from_currency, "from")
    target = currency_param(to_currency, "to")

    result = analyzer.analyze(base, target, period)
    logger.info(
        f"Trend analysis completed: {base} -> {target} over {result.period} = {result.trend_percentage}%"
    )
    return TrendResponse.model_validate(result)
