# backend/fxrates/services/constants.py
"""
Centralized constants for the exchange rate services.

Values that operators are expected to tune live in fxrates.config.Settings;
this module holds the fixed business constants and the defaults the services
fall back to when constructed without settings (tests, scripts).

Usage:
    from fxrates.services.constants import (
        AGGREGATED_PROVIDER,
        CURRENCY_PRECISION,
        DEFAULT_RATE_CACHE_TTL_SECONDS,
    )
"""

from decimal import Decimal


# =============================================================================
# PROVENANCE
# =============================================================================

# Source tag stored on every observation written by a refresh cycle
# The value is the best rate across sources, not any single source's quote
AGGREGATED_PROVIDER: str = "aggregated"


# =============================================================================
# CACHE SETTINGS
# =============================================================================

# Redis key prefix; one hash per base currency: "rates:{BASE}" -> {TARGET: rate}
RATE_CACHE_KEY_PREFIX: str = "rates:"

# Maximum age of a cached rate bucket
# 2 hours = 7200 seconds (refresh runs hourly, so one missed run is tolerated)
DEFAULT_RATE_CACHE_TTL_SECONDS: int = 7200


# =============================================================================
# RATE SOURCE SETTINGS
# =============================================================================

# Per-call timeout for an upstream rate source
DEFAULT_SOURCE_TIMEOUT_SECONDS: float = 10.0

# Worker pool size for the concurrent source fan-out
DEFAULT_AGGREGATOR_MAX_WORKERS: int = 5

# Consecutive failures before a source is reported unavailable
SOURCE_FAILURE_THRESHOLD: int = 3

# Seconds an unavailable source is skipped before a probe call is allowed
SOURCE_RECOVERY_TIMEOUT: float = 60.0


# =============================================================================
# TREND SETTINGS
# =============================================================================

# Smallest accepted hour-based trend period ("12H")
MIN_TREND_HOURS: int = 12

# Observations needed to establish a trend (oldest and newest)
MIN_TREND_DATA_POINTS: int = 2

# Longest history backfill in one request; one upstream call per source per day
MAX_BACKFILL_DAYS: int = 90


# =============================================================================
# DECIMAL PRECISION CONSTANTS
# =============================================================================

# Converted amounts: 2 decimal places (e.g., 85.50)
CURRENCY_PRECISION: Decimal = Decimal("0.01")

# Stored rates: 6 decimal places, matching NUMERIC(20, 6)
RATE_PRECISION: Decimal = Decimal("0.000001")

# Trend percentages: 2 decimal places (e.g., 9.09)
DISPLAY_PERCENTAGE_PRECISION: Decimal = Decimal("0.01")

ZERO: Decimal = Decimal("0")
HUNDRED: Decimal = Decimal("100")


# =============================================================================
# RATE LIMITING CONSTANTS
# =============================================================================
# Format follows slowapi/limits syntax: "100/minute", "10/hour", etc.

# Read endpoints (conversion, history, trends)
RATE_LIMIT_DEFAULT: str = "100/minute"

# Write endpoints (add currency)
RATE_LIMIT_WRITE: str = "30/minute"

# Endpoints that hit upstream sources (refresh, on-demand best rate)
RATE_LIMIT_REFRESH: str = "10/minute"

# Health checks polled by monitoring
RATE_LIMIT_HEALTH: str = "300/minute"
