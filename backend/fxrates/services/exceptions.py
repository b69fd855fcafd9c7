# backend/fxrates/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer is responsible for mapping these to appropriate HTTP responses.

A missing rate is NOT an exception inside the services: lookups return None
and the HTTP layer decides what that means for the client.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InvalidCurrencyError
    │   └── InvalidPeriodFormatError
    │       └── PeriodBelowMinimumError
    ├── NotFoundError
    │   ├── CurrencyNotFoundError
    │   └── ExchangeRateNotFoundError
    ├── ConflictError
    │   └── CurrencyAlreadyExistsError
    ├── InsufficientHistoryError
    ├── RateSourceError
    │   └── SourceUnavailableError
    └── RefreshError

    CircuitBreakerOpen (from circuit_breaker module)
        - Raised when a rate source's circuit breaker is open
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input validation fails.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidCurrencyError(ValidationError):
    """Raised when a currency code is not a valid ISO 4217 code."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(
            f"Invalid currency code: '{code}'. Must be a valid ISO 4217 code (e.g., USD, EUR, GBP)",
            field="currency",
        )


class InvalidPeriodFormatError(ValidationError):
    """
    Raised when a trend period does not match <number><unit>.

    Valid units are H (hours), D (days), M (months) and Y (years).
    """

    def __init__(self, period: str | None, message: str | None = None) -> None:
        self.period = period
        super().__init__(
            message or f"Invalid period format: '{period}'. Use format: 12H, 10D, 3M, or 1Y",
            field="period",
        )


class PeriodBelowMinimumError(InvalidPeriodFormatError):
    """
    Raised when an hour-based period is shorter than the allowed minimum.

    Attributes:
        minimum_hours: Smallest accepted number of hours
    """

    def __init__(self, period: str, minimum_hours: int) -> None:
        self.minimum_hours = minimum_hours
        super().__init__(
            period,
            message=f"Period in hours must be at least {minimum_hours}. Got: '{period}'",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Currency")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class CurrencyNotFoundError(NotFoundError):
    """Raised when a currency code is not registered."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(
            f"Currency '{code}' not found",
            resource_type="Currency",
            resource_id=code,
        )


class ExchangeRateNotFoundError(NotFoundError):
    """
    Raised by the HTTP layer when no rate is known for a pair.

    Services report an unknown rate as None; this exception only exists so
    routers can turn that into a consistent 404 body.
    """

    def __init__(self, base_currency: str, target_currency: str) -> None:
        self.base_currency = base_currency
        self.target_currency = target_currency
        super().__init__(
            f"Exchange rate not found for {base_currency} -> {target_currency}",
            resource_type="ExchangeRate",
            resource_id=f"{base_currency}/{target_currency}",
        )


# =============================================================================
# CONFLICT ERRORS
# =============================================================================


class ConflictError(ServiceError):
    """Base exception for operations that clash with existing state."""
    pass


class CurrencyAlreadyExistsError(ConflictError):
    """Raised when registering a currency code that is already registered."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Currency with code {code} already exists")


# =============================================================================
# TREND ERRORS
# =============================================================================


class InsufficientHistoryError(ServiceError):
    """
    Raised when a trend window holds fewer than two observations.

    A single point cannot establish a trend. Unlike period format errors,
    this is only raised after the historical query has run.

    Attributes:
        base_currency: The base currency code
        target_currency: The target currency code
        data_points: Number of observations found in the window
    """

    def __init__(self, base_currency: str, target_currency: str, data_points: int) -> None:
        self.base_currency = base_currency
        self.target_currency = target_currency
        self.data_points = data_points
        super().__init__(
            f"Insufficient historical data for {base_currency} -> {target_currency} "
            f"({data_points} data point{'s' if data_points != 1 else ''} in period)"
        )


# =============================================================================
# RATE SOURCE ERRORS
# =============================================================================


class RateSourceError(ServiceError):
    """
    Base exception for upstream rate source failures.

    These never escape the aggregator: a failing source is logged and
    skipped for the current call.

    Attributes:
        source: Name of the source that failed
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)


class SourceUnavailableError(RateSourceError):
    """
    Raised when a rate source cannot produce rates.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)
    - API-level error payload ({"success": false, ...})
    """

    def __init__(self, source: str, reason: str) -> None:
        message = f"Rate source '{source}' is unavailable: {reason}"
        super().__init__(message, source=source)
        self.reason = reason


# =============================================================================
# REFRESH ERRORS
# =============================================================================


class RefreshError(ServiceError):
    """
    Raised when the aggregation step of a refresh fails.

    Raised before anything is persisted or evicted, so a failed refresh
    leaves both the database and the cache untouched.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to refresh exchange rates: {reason}")


# =============================================================================
# CIRCUIT BREAKER (re-exported for convenience)
# =============================================================================

from fxrates.services.circuit_breaker import CircuitBreakerOpen  # noqa: E402

__all__ = [
    "ServiceError",
    "ValidationError",
    "InvalidCurrencyError",
    "InvalidPeriodFormatError",
    "PeriodBelowMinimumError",
    "NotFoundError",
    "CurrencyNotFoundError",
    "ExchangeRateNotFoundError",
    "ConflictError",
    "CurrencyAlreadyExistsError",
    "InsufficientHistoryError",
    "RateSourceError",
    "SourceUnavailableError",
    "RefreshError",
    "CircuitBreakerOpen",
]
