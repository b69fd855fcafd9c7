# backend/tests/services/test_rate_store.py
"""
Tests for RateStore against an in-memory SQLite database.
"""

from datetime import timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from fxrates.models import ExchangeRate
from fxrates.services.rate_store import RateObservation
from tests.conftest import FIXED_NOW, create_observation, save_series


class TestSave:
    """Tests for save() and save_all()."""

    def test_save_assigns_id(self, rate_store):
        saved = rate_store.save(create_observation())

        assert saved.id is not None
        assert saved.base_currency == "USD"
        assert saved.rate == Decimal("0.85")
        assert saved.source_name == "aggregated"

    def test_save_uppercases_and_quantizes(self, rate_store):
        saved = rate_store.save(create_observation(base="usd", target="eur", rate="0.12345678"))

        assert saved.base_currency == "USD"
        assert saved.target_currency == "EUR"
        assert saved.rate == Decimal("0.123457")

    def test_timestamps_read_back_as_utc(self, rate_store):
        saved = rate_store.save(create_observation(timestamp=FIXED_NOW))

        assert saved.timestamp == FIXED_NOW
        assert saved.timestamp.tzinfo == timezone.utc

    def test_save_all_returns_count(self, rate_store, db):
        observations = [
            create_observation("USD", "EUR", "0.85"),
            create_observation("USD", "GBP", "0.75"),
            create_observation("EUR", "USD", "1.18"),
        ]

        assert rate_store.save_all(observations) == 3
        assert db.execute(select(func.count()).select_from(ExchangeRate)).scalar() == 3

    def test_save_all_empty(self, rate_store):
        assert rate_store.save_all([]) == 0

    def test_save_all_is_atomic(self, rate_store, db):
        """A row violating the positive-rate constraint aborts the whole batch."""
        observations = [
            create_observation("USD", "EUR", "0.85"),
            create_observation("USD", "GBP", "-1"),
        ]

        with pytest.raises(IntegrityError):
            rate_store.save_all(observations)

        assert db.execute(select(func.count()).select_from(ExchangeRate)).scalar() == 0


class TestFindLatestRate:
    """Tests for find_latest_rate()."""

    def test_returns_most_recent(self, rate_store):
        save_series(rate_store, ["0.80", "0.82", "0.85"])

        latest = rate_store.find_latest_rate("USD", "EUR")

        assert latest.rate == Decimal("0.85")
        assert latest.timestamp == FIXED_NOW

    def test_insertion_order_does_not_matter(self, rate_store):
        rate_store.save(create_observation(rate="0.85", timestamp=FIXED_NOW))
        rate_store.save(create_observation(rate="0.80", timestamp=FIXED_NOW - timedelta(days=1)))

        assert rate_store.find_latest_rate("USD", "EUR").rate == Decimal("0.85")

    def test_same_timestamp_prefers_last_inserted(self, rate_store):
        rate_store.save(create_observation(rate="0.85"))
        rate_store.save(create_observation(rate="0.86"))

        assert rate_store.find_latest_rate("USD", "EUR").rate == Decimal("0.86")

    def test_unknown_pair(self, rate_store):
        save_series(rate_store, ["0.85"])

        assert rate_store.find_latest_rate("USD", "JPY") is None
        assert rate_store.find_latest_rate("EUR", "USD") is None

    def test_case_insensitive(self, rate_store):
        save_series(rate_store, ["0.85"])

        assert rate_store.find_latest_rate("usd", "eur") is not None


class TestFindRatesByPeriod:
    """Tests for find_rates_by_period()."""

    def test_inclusive_range_oldest_first(self, rate_store):
        save_series(rate_store, ["0.80", "0.81", "0.82", "0.83", "0.84"])

        rates = rate_store.find_rates_by_period(
            "USD", "EUR",
            start=FIXED_NOW - timedelta(days=3),
            end=FIXED_NOW - timedelta(days=1),
        )

        assert [r.rate for r in rates] == [Decimal("0.81"), Decimal("0.82"), Decimal("0.83")]

    def test_empty_range(self, rate_store):
        save_series(rate_store, ["0.80"])

        assert rate_store.find_rates_by_period(
            "USD", "EUR", FIXED_NOW + timedelta(days=1), FIXED_NOW + timedelta(days=2)
        ) == []

    def test_other_pairs_excluded(self, rate_store):
        save_series(rate_store, ["0.80", "0.81"])
        save_series(rate_store, ["1.20", "1.21"], base="EUR", target="USD")

        rates = rate_store.find_rates_by_period("EUR", "USD", FIXED_NOW - timedelta(days=5), FIXED_NOW)

        assert all(r.base_currency == "EUR" and r.target_currency == "USD" for r in rates)
        assert len(rates) == 2


class TestFindAllLatestRates:
    """Tests for find_all_latest_rates()."""

    def test_one_observation_per_pair(self, rate_store):
        save_series(rate_store, ["0.80", "0.85"])
        save_series(rate_store, ["0.70", "0.75"], target="GBP")
        save_series(rate_store, ["1.20"], base="EUR", target="USD")

        latest = rate_store.find_all_latest_rates()

        assert {(o.base_currency, o.target_currency): o.rate for o in latest} == {
            ("EUR", "USD"): Decimal("1.20"),
            ("USD", "EUR"): Decimal("0.85"),
            ("USD", "GBP"): Decimal("0.75"),
        }

    def test_ties_resolved_to_last_inserted(self, rate_store):
        rate_store.save(create_observation(rate="0.85"))
        rate_store.save(create_observation(rate="0.86"))

        latest = rate_store.find_all_latest_rates()

        assert len(latest) == 1
        assert latest[0].rate == Decimal("0.86")

    def test_empty_store(self, rate_store):
        assert rate_store.find_all_latest_rates() == []


class TestRateObservation:

    def test_is_immutable(self):
        observation = create_observation()

        with pytest.raises(AttributeError):
            observation.rate = Decimal("1")

    def test_equality_by_value(self):
        assert create_observation() == RateObservation(
            base_currency="USD",
            target_currency="EUR",
            rate=Decimal("0.85"),
            timestamp=FIXED_NOW,
            source_name="aggregated",
        )
