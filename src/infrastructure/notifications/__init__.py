# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification system for the music school.

This package delivers messages to students through three channels:
- Internal inbox (receipt rows in the database)
- Email (SMTP)
- WhatsApp (session gateway, with Cloud API fallback)

Key Components:
- NotificationService: Class event entry points (cancellation, time change)
- DeliveryDispatcher: Per-recipient, per-channel delivery with isolation
- ContentTemplater: Channel-specific rendering and placeholders
- OutcomeReport: Aggregate per-channel and per-student results
- DirectSender: One-off email or WhatsApp sends and channel status

Usage:
    from src.infrastructure.notifications import NotificationService

    service = NotificationService.from_session(session, get_settings())
    result = await service.notify_class_cancellation(
        class_id,
        reason="Profesor enfermo",
        actor_id=current_user.id,
    )
    print(result.to_dict()["results"]["email"])

Configuration (environment variables):
- SMTP_*: SMTP server and sender settings
- WHATSAPP_*: Gateway and Cloud API settings
- NOTIFY_CHANNEL_TIMEOUT_SECONDS: Deadline for each outbound call
"""

from src.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryRequest,
    DeliveryStatus,
    EmailChannel,
    InternalChannel,
    WhatsAppChannel,
)
from src.infrastructure.notifications.direct import ChannelStatus, DirectSender, GatewayStatus
from src.infrastructure.notifications.dispatcher import (
    ChannelTally,
    DeliveryDispatcher,
    DispatchEnvelope,
    OutcomeReport,
    RecipientOutcome,
)
from src.infrastructure.notifications.service import (
    AuditPersistError,
    ClassLoadError,
    NotificationError,
    NotificationRunResult,
    NotificationService,
    build_summary,
)
from src.infrastructure.notifications.templates import ContentTemplater

__all__ = [
    # Service
    "NotificationService",
    "NotificationRunResult",
    "NotificationError",
    "ClassLoadError",
    "AuditPersistError",
    "build_summary",
    # Direct sends
    "ChannelStatus",
    "DirectSender",
    "GatewayStatus",
    # Delivery
    "ChannelTally",
    "ContentTemplater",
    "DeliveryDispatcher",
    "DispatchEnvelope",
    "OutcomeReport",
    "RecipientOutcome",
    # Channel types
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryRequest",
    "DeliveryStatus",
    # Channels
    "EmailChannel",
    "InternalChannel",
    "WhatsAppChannel",
]
