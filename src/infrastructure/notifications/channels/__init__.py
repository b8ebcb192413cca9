# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification channels for delivering messages.

This package provides channel implementations for sending
messages through each delivery mechanism:

- InternalChannel: Records inbox delivery in the database
- EmailChannel: Sends email via SMTP
- WhatsAppChannel: Sends WhatsApp messages with transport fallback

Usage:
    from src.infrastructure.notifications.channels import (
        DeliveryRequest,
        EmailChannel,
    )

    email = EmailChannel(settings.smtp, timeout_seconds=20)

    result = await email.deliver(
        DeliveryRequest(
            message_id=message.id,
            recipient_id=student.id,
            destination="alumno@example.com",
            subject="Clase Cancelada: Guitarra 101",
            body=html,
        )
    )
"""

from src.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryRequest,
    DeliveryStatus,
)
from src.infrastructure.notifications.channels.email import EmailChannel
from src.infrastructure.notifications.channels.in_app import InternalChannel
from src.infrastructure.notifications.channels.whatsapp import (
    WhatsAppChannel,
    WhatsAppCloudTransport,
    WhatsAppTransport,
    WhatsAppTransportError,
    WhatsAppWebTransport,
    normalize_phone,
)

__all__ = [
    # Base types
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryRequest",
    "DeliveryStatus",
    # Channels
    "EmailChannel",
    "InternalChannel",
    "WhatsAppChannel",
    # WhatsApp transports
    "WhatsAppCloudTransport",
    "WhatsAppTransport",
    "WhatsAppTransportError",
    "WhatsAppWebTransport",
    "normalize_phone",
]
