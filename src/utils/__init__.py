# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations and Spanish date labels
"""

from src.utils.datetime import (
    ensure_utc,
    format_long_date_es,
    parse_day,
    utc_now,
)
from src.utils.logging import get_logger, log_context, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "log_context",
    "setup_logging",
    # Datetime
    "ensure_utc",
    "format_long_date_es",
    "parse_day",
    "utc_now",
]
