# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package.

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from src.core.config.settings import (
    CORSSettings,
    DatabaseSettings,
    JWTSettings,
    NotificationSettings,
    Settings,
    SMTPSettings,
    WhatsAppSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "CORSSettings",
    "DatabaseSettings",
    "JWTSettings",
    "NotificationSettings",
    "Settings",
    "SMTPSettings",
    "WhatsAppSettings",
    "clear_settings_cache",
    "get_settings",
]
