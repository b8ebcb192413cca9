# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class notification and direct send schemas."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.models.message import MAX_BODY_LENGTH


class ClassCancellationRequest(BaseModel):
    """Request to notify students that a class was cancelled."""

    reason: str | None = Field(default=None, max_length=500)


class ClassTimeChangeRequest(BaseModel):
    """Request to notify students that a class moved."""

    old_time: str = Field(min_length=1, max_length=100, examples=["10:00-11:00"])
    new_time: str = Field(min_length=1, max_length=100, examples=["14:00-15:00"])


class NotificationRunResponse(BaseModel):
    """Outcome of one class notification run.

    ``results`` carries the outcome report with the keys the school UI
    reads: ``internos``, ``whatsapp``, ``email`` (each with ``enviados``
    and ``errores``) and ``detalles``.
    """

    success: bool
    results: dict[str, Any] | None = None
    error: str | None = None


class DirectChannel(str, Enum):
    """Channels that accept a direct send."""

    EMAIL = "email"
    WHATSAPP = "whatsapp"


class ChannelCheckRequest(BaseModel):
    """Request to send the fixed test message through one channel."""

    channel: DirectChannel
    recipient: str = Field(
        min_length=1,
        max_length=255,
        description="Email address or phone number",
    )


class DirectMessageRequest(BaseModel):
    """Request to send one message to one address."""

    channel: DirectChannel
    recipient: str = Field(
        min_length=1,
        max_length=255,
        description="Email address or phone number",
    )
    subject: str | None = Field(default=None, max_length=200, description="Email only")
    content: str = Field(min_length=1, max_length=MAX_BODY_LENGTH)


class DirectSendResponse(BaseModel):
    """Outcome of a direct send."""

    success: bool
    channel: DirectChannel
    message_id: str | None = None
    error: str | None = None


class EmailStatus(BaseModel):
    configured: bool


class WhatsAppWebStatus(BaseModel):
    configured: bool
    ready: bool
    error: str | None = None


class WhatsAppCloudStatus(BaseModel):
    configured: bool


class ChannelStatusResponse(BaseModel):
    """Configuration and readiness of the outbound channels.

    ``services`` tells whether each channel can deliver right now:
    email when SMTP is configured, WhatsApp when the gateway session is
    ready or the Cloud API is configured.
    """

    email: EmailStatus
    whatsapp_web: WhatsAppWebStatus
    whatsapp_cloud: WhatsAppCloudStatus
    services: dict[str, bool]
