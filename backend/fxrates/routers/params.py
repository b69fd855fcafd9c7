# backend/fxrates/routers/params.py
"""Query parameter helpers shared by the routers."""

from fxrates.schemas.validators import validate_currency
from fxrates.services.exceptions import ValidationError


def currency_param(value: str | None, field: str) -> str:
    """
    Normalize a currency query parameter.

    Raises:
        ValidationError: Not a valid ISO 4217 code (mapped to 400)
    """
    try:
        return validate_currency(value)
    except ValueError as e:
        raise ValidationError(str(e), field=field) from e
