#!/usr/bin/env python3
# backend/init_db.py
"""
Database initialization script.

Creates the exchange rate tables and registers the tracked currencies
(TRACKED_CURRENCIES). Safe to run more than once.

This script can be run from any directory:
    python backend/init_db.py
    cd backend && python init_db.py
"""
import sys
from pathlib import Path

# Add the backend directory to Python path so 'fxrates' package is importable
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from fxrates.config import settings
from fxrates.database import SessionLocal, engine
from fxrates.models import Base
from fxrates.services.currency_service import CurrencyService


def init_db() -> None:
    """Create all database tables and seed the currency registry."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")

    added = CurrencyService(SessionLocal).seed_currencies(settings.tracked_currencies)
    print(f"Registered {added} new currencies ({', '.join(settings.tracked_currencies)})")


if __name__ == "__main__":
    init_db()
