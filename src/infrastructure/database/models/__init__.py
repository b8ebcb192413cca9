# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models."""

from src.infrastructure.database.models.base import Base, TimestampMixin, new_uuid
from src.infrastructure.database.models.message import (
    DELIVERY_CHANNELS,
    MESSAGE_STATUSES,
    RECIPIENT_KINDS,
    Message,
    MessageDelivery,
    MessageRead,
)
from src.infrastructure.database.models.school import (
    ClassStudent,
    MusicClass,
    Student,
    User,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "new_uuid",
    # Messaging
    "DELIVERY_CHANNELS",
    "MESSAGE_STATUSES",
    "RECIPIENT_KINDS",
    "Message",
    "MessageDelivery",
    "MessageRead",
    # Directory
    "ClassStudent",
    "MusicClass",
    "Student",
    "User",
]
