# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the messaging domain."""


class MessagingError(Exception):
    """Base exception for messaging errors."""

    pass


class MessageNotFoundError(MessagingError):
    """Raised when a message does not exist."""

    pass


class TrackerError(MessagingError):
    """Base exception for receipt tracking errors."""

    pass


class MessageNotSentError(TrackerError):
    """Raised when recording a receipt on a draft message."""

    pass


class InvalidChannelError(TrackerError):
    """Raised for a channel outside internal/email/whatsapp."""

    pass


class MessageServiceError(MessagingError):
    """Base exception for message lifecycle errors."""

    pass


class MessageAlreadySentError(MessageServiceError):
    """Raised when sending a message that is not a draft."""

    pass


class MessageConflictError(MessageServiceError):
    """Raised when a concurrent writer changed the message first."""

    pass


class MessageNotDeletableError(MessageServiceError):
    """Raised when deleting a message that has been sent."""

    pass
