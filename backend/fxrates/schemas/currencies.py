# backend/fxrates/schemas/currencies.py
"""Pydantic schemas for the currency registry."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class CurrencyResponse(BaseModel):
    """A registered currency."""

    code: str = Field(..., description="ISO 4217 code", examples=["USD"])
    name: str = Field(..., description="Display name", examples=["US Dollar"])
    created_at: dt.datetime | None = Field(default=None, description="When it was registered")

    model_config = ConfigDict(from_attributes=True)


class CurrencyListResponse(BaseModel):
    currencies: list[CurrencyResponse]
    total: int = Field(..., description="Number of registered currencies")
