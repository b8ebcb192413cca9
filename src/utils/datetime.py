# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities.

All timestamps are stored in UTC and every Python datetime handled by the
services is timezone-aware. Some drivers (SQLite in tests) hand back naive
values, so comparisons go through ensure_utc().

Usage:
------
    from src.utils.datetime import utc_now

    # For SQLAlchemy model defaults
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import date, datetime, timezone

SPANISH_WEEKDAYS = (
    "lunes",
    "martes",
    "miércoles",
    "jueves",
    "viernes",
    "sábado",
    "domingo",
)

SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_day(value: str | None) -> date | None:
    """Parse a class schedule day in DD-MM-YYYY format.

    Args:
        value: Day string as stored on class schedules.

    Returns:
        Parsed date, or None when missing or malformed.
    """
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%d-%m-%Y").date()
    except ValueError:
        return None


def format_long_date_es(day: date) -> str:
    """Format a date as a long Spanish label.

    Example:
        >>> format_long_date_es(date(2025, 3, 14))
        'viernes, 14 de marzo de 2025'
    """
    weekday = SPANISH_WEEKDAYS[day.weekday()]
    month = SPANISH_MONTHS[day.month - 1]
    return f"{weekday}, {day.day} de {month} de {day.year}"
