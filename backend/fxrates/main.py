# backend/fxrates/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application and its lifespan (registry seeding, refresh scheduler)
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from fxrates.config import settings
from fxrates.database import check_database_health, engine
from fxrates.dependencies import (
    get_currency_service,
    get_rate_aggregator,
    get_rate_cache,
    get_refresh_scheduler,
)
from fxrates.middleware import (
    RATE_LIMIT_HEALTH,
    CorrelationIdMiddleware,
    SlowAPIMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from fxrates.models import Base
from fxrates.routers import currencies_router, exchange_rates_router, trends_router
from fxrates.schemas.errors import ErrorDetail, ValidationErrorDetail
from fxrates.services.exceptions import (
    ConflictError,
    InsufficientHistoryError,
    NotFoundError,
    RefreshError,
    ServiceError,
    ValidationError,
)
from fxrates.services.rate_cache import RateCache
from fxrates.services.scheduler import RateRefreshScheduler
from fxrates.utils import setup_logging

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# LIFESPAN
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Seed the currency registry and start the periodic refresh.

    SQLite databases get their tables created here; PostgreSQL schemas are
    created by init_db.py.
    """
    if settings.is_sqlite:
        Base.metadata.create_all(bind=engine)

    added = get_currency_service().seed_currencies(settings.tracked_currencies)
    if added:
        logger.info(f"Seeded {added} currencies into the registry")

    scheduler = get_refresh_scheduler()
    if settings.refresh_enabled and not settings.is_test:
        scheduler.start()

    try:
        yield
    finally:
        scheduler.shutdown()
        get_rate_aggregator().shutdown()
        logger.info("Application shutdown complete")


# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Multi-source currency exchange rates, conversion and trend analysis",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Services raise domain exceptions; these handlers turn them into the
# uniform ErrorDetail body. The most specific handler registered for an
# exception's MRO wins.
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle validation errors, including malformed trend periods (400)."""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={"field": exc.field} if exc.field else None,
        ).model_dump(),
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle unknown currencies and rates (404)."""
    logger.warning(f"Not found: {exc}")
    details = None
    if exc.resource_type:
        details = {"resource_type": exc.resource_type, "resource_id": exc.resource_id}
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=details,
        ).model_dump(),
    )


@app.exception_handler(InsufficientHistoryError)
async def insufficient_history_handler(
        request: Request, exc: InsufficientHistoryError
) -> JSONResponse:
    """Handle trend requests over a window with fewer than two rates (404)."""
    logger.warning(f"Insufficient history: {exc}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error="InsufficientHistoryError",
            message=str(exc),
            details={
                "base_currency": exc.base_currency,
                "target_currency": exc.target_currency,
                "data_points": exc.data_points,
            },
        ).model_dump(),
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """Handle duplicate registrations (409)."""
    logger.warning(f"Conflict: {exc}")
    return JSONResponse(
        status_code=409,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(RefreshError)
async def refresh_error_handler(request: Request, exc: RefreshError) -> JSONResponse:
    """Handle a failed manual refresh (500)."""
    logger.error(f"Refresh failed: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="RefreshError",
            message=str(exc),
            details={"reason": exc.reason},
        ).model_dump(),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ServiceError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Convert {"detail": ...} bodies, including routing 404/405, to ErrorDetail."""
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        409: "ConflictError",
        422: "ValidationError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
        request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle malformed query parameters (422)."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(
            error="ValidationError",
            message="Request validation failed",
            details=errors,
        ).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(trends_router, prefix=API_PREFIX)  # /api/v1/currencies/trends
app.include_router(exchange_rates_router, prefix=API_PREFIX)  # /api/v1/currencies/{exchange-rates,refresh,...}
app.include_router(currencies_router, prefix=API_PREFIX)  # /api/v1/currencies


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def root(request: Request):
    """API root - returns basic application info."""
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(
        request: Request,
        cache: RateCache = Depends(get_rate_cache),
        scheduler: RateRefreshScheduler = Depends(get_refresh_scheduler),
):
    """
    Database and cache liveness, plus the refresh scheduler state.

    **Response Status Codes:**
    - 200: Healthy, or degraded when only the cache is down (lookups fall back to the database)
    - 503: Database unreachable
    """
    checks = {"database": {**check_database_health(), "critical": True}}
    database_healthy = checks["database"]["status"] == "healthy"

    cache_healthy = cache.is_available()
    checks["cache"] = {
        "status": "healthy" if cache_healthy else "unhealthy",
        "critical": False,
        "backend": type(cache).__name__,
    }
    # Informational; a failed refresh leaves the last good rates in place
    checks["refresh"] = {**scheduler.status(), "critical": False}

    if not database_healthy:
        overall_status = "unhealthy"
    elif not cache_healthy:
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    response_data = {"status": overall_status, "checks": checks}
    if not database_healthy:
        return JSONResponse(status_code=503, content=response_data)
    return response_data


@app.get("/health/live", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def liveness_check(request: Request):
    """Liveness probe; never checks dependencies."""
    return {"status": "alive"}
