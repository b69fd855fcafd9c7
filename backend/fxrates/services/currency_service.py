# backend/fxrates/services/currency_service.py
"""
Currency registry.

The registry decides which currencies a refresh covers: every registered
code is fetched as a base currency, and aggregated results keep only
registered codes as targets.

Codes are validated against ISO 4217 before they are registered.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fxrates.models import Currency
from fxrates.services.exceptions import (
    CurrencyAlreadyExistsError,
    CurrencyNotFoundError,
    InvalidCurrencyError,
)
from fxrates.utils.iso4217 import currency_name, is_iso_currency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    name: str
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, row: Currency) -> "CurrencyInfo":
        return cls(code=row.code, name=row.name, created_at=row.created_at)


def normalize_currency_code(code: str | None) -> str:
    """
    Uppercase and validate a currency code.

    Raises:
        InvalidCurrencyError: If the code is not an ISO 4217 code
    """
    if code is None or not is_iso_currency(code):
        raise InvalidCurrencyError(code or "")
    return code.strip().upper()


class CurrencyService:
    """Reads and writes the currencies table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def list_currencies(self) -> list[CurrencyInfo]:
        with self._session_factory() as session:
            rows = session.execute(select(Currency).order_by(Currency.code)).scalars().all()
            return [CurrencyInfo.from_model(row) for row in rows]

    def tracked_codes(self) -> list[str]:
        """Registered codes in alphabetical order."""
        with self._session_factory() as session:
            return list(session.execute(select(Currency.code).order_by(Currency.code)).scalars())

    def get_currency(self, code: str) -> CurrencyInfo:
        """
        Raises:
            InvalidCurrencyError: Not an ISO 4217 code
            CurrencyNotFoundError: Valid but not registered
        """
        normalized = normalize_currency_code(code)
        with self._session_factory() as session:
            row = session.execute(
                select(Currency).where(Currency.code == normalized)
            ).scalar_one_or_none()
            if row is None:
                raise CurrencyNotFoundError(normalized)
            return CurrencyInfo.from_model(row)

    def is_registered(self, code: str) -> bool:
        with self._session_factory() as session:
            return session.execute(
                select(Currency.id).where(Currency.code == code.strip().upper())
            ).first() is not None

    def add_currency(self, code: str, name: str | None = None) -> CurrencyInfo:
        """
        Register a new currency.

        Args:
            code: ISO 4217 code, any case
            name: Display name; defaults to the ISO name

        Raises:
            InvalidCurrencyError: Not an ISO 4217 code
            CurrencyAlreadyExistsError: Code already registered
        """
        normalized = normalize_currency_code(code)
        display_name = (name or "").strip() or currency_name(normalized) or normalized

        with self._session_factory() as session:
            existing = session.execute(
                select(Currency.id).where(Currency.code == normalized)
            ).first()
            if existing is not None:
                raise CurrencyAlreadyExistsError(normalized)

            row = Currency(code=normalized, name=display_name)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                # Lost a race with a concurrent insert of the same code
                session.rollback()
                raise CurrencyAlreadyExistsError(normalized) from e
            session.refresh(row)

            logger.info(f"Registered currency {normalized} ({display_name})")
            return CurrencyInfo.from_model(row)

    def seed_currencies(self, codes: Iterable[str]) -> int:
        """
        Register any of the given codes that are missing.

        Invalid codes are logged and skipped.

        Returns:
            Number of currencies added
        """
        added = 0
        for code in codes:
            try:
                self.add_currency(code)
                added += 1
            except CurrencyAlreadyExistsError:
                continue
            except InvalidCurrencyError:
                logger.warning(f"Skipping invalid currency code in seed list: {code!r}")

        if added:
            logger.info(f"Seeded {added} currencies")
        return added
