# backend/fxrates/utils/__init__.py
"""
Cross-cutting utilities:
- logging: Logging setup with correlation IDs
- context: Correlation ID storage
- date_utils: Calendar arithmetic for trend windows
- iso4217: Currency code table

Usage:
    from fxrates.utils import setup_logging, get_logger
    from fxrates.utils import get_correlation_id, set_correlation_id
"""

from fxrates.utils.context import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from fxrates.utils.logging import get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
]
