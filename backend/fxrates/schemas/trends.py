# backend/fxrates/schemas/trends.py
"""Pydantic schemas for trend analysis."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class TrendResponse(BaseModel):
    base_currency: str = Field(..., examples=["USD"])
    target_currency: str = Field(..., examples=["EUR"])
    period: str = Field(..., description="Normalized period", examples=["7D"])
    trend_percentage: Decimal = Field(
        ...,
        description="Signed change in percent; positive means the base appreciated",
        examples=["2.35"],
    )
    description: str = Field(
        ...,
        examples=["USD appreciated by 2.35% against EUR over the last 7 days"],
    )

    model_config = ConfigDict(from_attributes=True)
