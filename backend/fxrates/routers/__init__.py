# backend/fxrates/routers/__init__.py
"""
API routers, all mounted under /api/v1:
- currencies: Currency registry
- exchange_rates: Conversion, refresh, best rate, history
- trends: Trend analysis
"""

from fxrates.routers.currencies import router as currencies_router
from fxrates.routers.exchange_rates import router as exchange_rates_router
from fxrates.routers.trends import router as trends_router

__all__ = [
    "currencies_router",
    "exchange_rates_router",
    "trends_router",
]
