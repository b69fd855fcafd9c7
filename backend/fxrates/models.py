# backend/fxrates/models.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, Index, CheckConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class Currency(Base):
    """
    Registry of currencies the service tracks.

    Every registered code is used as a base currency during a refresh, and
    only registered codes are kept as target currencies in aggregated results.
    """
    __tablename__ = "currencies"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    code: Mapped[str] = mapped_column(String(3), unique=True, index=True)  # ISO 4217, e.g. "USD"
    name: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )


class ExchangeRate(Base):
    """
    Append-only time series of exchange rate observations.

    Convention: rate represents "1 base_currency = X target_currency"
    Example: base=USD, target=EUR, rate=0.92 means 1 USD = 0.92 EUR

    One row is written per (base, target) pair on every successful refresh.
    Rows are never updated or deleted.
    """
    __tablename__ = "exchange_rates"
    __table_args__ = (
        # Covers "latest rate for pair" and "rates in period" lookups
        Index('idx_base_target_timestamp', 'base_currency', 'target_currency', 'timestamp'),
        CheckConstraint('rate > 0', name='ck_exchange_rate_positive'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    base_currency: Mapped[str] = mapped_column(String(3))
    target_currency: Mapped[str] = mapped_column(String(3))

    rate: Mapped[Decimal] = mapped_column(Numeric(20, 6))

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        index=True,
        default=lambda: datetime.now(timezone.utc)
    )

    # Source tag ("aggregated" for best rates written by a refresh)
    provider: Mapped[str] = mapped_column(String(50))
