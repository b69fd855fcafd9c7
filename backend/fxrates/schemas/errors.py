# backend/fxrates/schemas/errors.py
"""
Error response bodies.

Every error the API returns, whatever its status code, has the same
shape so clients can handle them uniformly.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Standard error body."""

    error: str = Field(
        ...,
        description="Error type (e.g., 'InvalidPeriodFormatError')"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )
    details: dict | None = Field(
        default=None,
        description="Additional error context"
    )


class ValidationErrorDetail(BaseModel):
    """Body of 422 responses produced by request validation."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict] = Field(
        ...,
        description="One entry per invalid field"
    )
