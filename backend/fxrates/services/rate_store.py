# backend/fxrates/services/rate_store.py
"""
Durable time series of exchange rate observations.

Wraps the exchange_rates table behind a small, session-independent interface
so the refresh cycle (scheduler thread) and request handlers share one store.

Each public method opens its own short-lived session from the injected
session factory; writes commit before returning.

Timestamps:
    Observations always carry timezone-aware UTC timestamps. SQLite returns
    naive datetimes even for DateTime(timezone=True) columns, so rows read
    back without tzinfo are tagged as UTC.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from fxrates.models import ExchangeRate
from fxrates.services.constants import RATE_PRECISION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateObservation:
    """
    One timestamped rate for a currency pair.

    Attributes:
        base_currency: Currency the rate is quoted from
        target_currency: Currency the rate is quoted to
        rate: 1 base_currency = rate target_currency
        timestamp: When the rate was observed (UTC)
        source_name: Provenance tag ("aggregated" for refresh results)
        id: Database id, None until persisted
    """
    base_currency: str
    target_currency: str
    rate: Decimal
    timestamp: datetime
    source_name: str
    id: int | None = None

    @classmethod
    def from_model(cls, row: ExchangeRate) -> "RateObservation":
        return cls(
            base_currency=row.base_currency,
            target_currency=row.target_currency,
            rate=Decimal(row.rate),
            timestamp=_as_utc(row.timestamp),
            source_name=row.provider,
            id=row.id,
        )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RateStore:
    """
    SQLAlchemy-backed store of RateObservation rows.

    Rows are only ever inserted; nothing here updates or deletes them.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    # =========================================================================
    # WRITES
    # =========================================================================

    def save(self, observation: RateObservation) -> RateObservation:
        """Insert one observation and return it with its database id."""
        with self._session_factory() as session:
            row = self._to_model(observation)
            session.add(row)
            session.commit()
            session.refresh(row)
            return RateObservation.from_model(row)

    def save_all(self, observations: Iterable[RateObservation]) -> int:
        """
        Insert many observations in a single transaction.

        Either every row is written or none is.

        Returns:
            Number of rows written
        """
        rows = [self._to_model(obs) for obs in observations]
        if not rows:
            return 0

        with self._session_factory() as session:
            try:
                session.add_all(rows)
                session.commit()
            except Exception:
                session.rollback()
                logger.exception(f"Failed to save {len(rows)} rate observations")
                raise

        logger.debug(f"Saved {len(rows)} rate observations")
        return len(rows)

    # =========================================================================
    # READS
    # =========================================================================

    def find_latest_rate(self, base_currency: str, target_currency: str) -> RateObservation | None:
        """Most recent observation for a pair, or None if the pair was never recorded."""
        stmt = (
            select(ExchangeRate)
            .where(
                ExchangeRate.base_currency == base_currency.upper(),
                ExchangeRate.target_currency == target_currency.upper(),
            )
            .order_by(ExchangeRate.timestamp.desc(), ExchangeRate.id.desc())
            .limit(1)
        )

        with self._session_factory() as session:
            row = session.execute(stmt).scalar_one_or_none()
            return RateObservation.from_model(row) if row else None

    def find_rates_by_period(
            self,
            base_currency: str,
            target_currency: str,
            start: datetime,
            end: datetime,
    ) -> list[RateObservation]:
        """
        Observations for a pair with start <= timestamp <= end, oldest first.

        Returns:
            List of observations (empty when nothing was recorded)
        """
        stmt = (
            select(ExchangeRate)
            .where(
                ExchangeRate.base_currency == base_currency.upper(),
                ExchangeRate.target_currency == target_currency.upper(),
                ExchangeRate.timestamp >= _as_utc(start),
                ExchangeRate.timestamp <= _as_utc(end),
            )
            .order_by(ExchangeRate.timestamp.asc(), ExchangeRate.id.asc())
        )

        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [RateObservation.from_model(row) for row in rows]

    def find_all_latest_rates(self) -> list[RateObservation]:
        """
        Most recent observation for every distinct (base, target) pair.

        Returns:
            One observation per pair, ordered by base then target
        """
        latest = (
            select(
                ExchangeRate.base_currency,
                ExchangeRate.target_currency,
                func.max(ExchangeRate.timestamp).label("max_timestamp"),
            )
            .group_by(ExchangeRate.base_currency, ExchangeRate.target_currency)
            .subquery()
        )

        stmt = (
            select(ExchangeRate)
            .join(
                latest,
                and_(
                    ExchangeRate.base_currency == latest.c.base_currency,
                    ExchangeRate.target_currency == latest.c.target_currency,
                    ExchangeRate.timestamp == latest.c.max_timestamp,
                ),
            )
            .order_by(ExchangeRate.base_currency, ExchangeRate.target_currency, ExchangeRate.id.desc())
        )

        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()

            # Two rows can share the latest timestamp; keep the last inserted
            result: dict[tuple[str, str], RateObservation] = {}
            for row in rows:
                key = (row.base_currency, row.target_currency)
                if key not in result:
                    result[key] = RateObservation.from_model(row)

        return list(result.values())

    @staticmethod
    def _to_model(observation: RateObservation) -> ExchangeRate:
        return ExchangeRate(
            base_currency=observation.base_currency.upper(),
            target_currency=observation.target_currency.upper(),
            rate=observation.rate.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP),
            timestamp=_as_utc(observation.timestamp),
            provider=observation.source_name,
        )
