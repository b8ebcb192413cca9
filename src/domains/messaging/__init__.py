# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Internal messaging domain.

Message lifecycle (draft -> sent), recipient resolution and idempotent
delivery/read receipts. MessageService lives in
src.domains.messaging.service.
"""

from src.domains.messaging.errors import (
    InvalidChannelError,
    MessageAlreadySentError,
    MessageConflictError,
    MessageNotDeletableError,
    MessageNotFoundError,
    MessageNotSentError,
    MessageServiceError,
    MessagingError,
    TrackerError,
)
from src.domains.messaging.recipients import RecipientResolutionError, RecipientResolver
from src.domains.messaging.repository import MessageRepository
from src.domains.messaging.tracker import DeliveryTracker

__all__ = [
    "DeliveryTracker",
    "MessageRepository",
    "RecipientResolver",
    # Errors
    "InvalidChannelError",
    "MessageAlreadySentError",
    "MessageConflictError",
    "MessageNotDeletableError",
    "MessageNotFoundError",
    "MessageNotSentError",
    "MessageServiceError",
    "MessagingError",
    "RecipientResolutionError",
    "TrackerError",
]
