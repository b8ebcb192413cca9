# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Channel contract shared by the internal inbox, email and WhatsApp.

A channel delivers one message to one recipient and reports the outcome
as a ChannelResult. Failures are values, not exceptions, and every send
runs under a deadline so that a hung transport cannot stall the rest of
a fan-out.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from src.utils.datetime import utc_now

DEFAULT_TIMEOUT_SECONDS = 20.0


class ChannelType(str, Enum):
    """Delivery channels, in dispatch order."""

    INTERNAL = "internal"
    EMAIL = "email"
    WHATSAPP = "whatsapp"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass
class DeliveryRequest:
    """One message addressed to one recipient.

    Attributes:
        message_id: Message being delivered.
        recipient_id: Student receiving it.
        subject: Message subject.
        body: Content already rendered for the channel.
        destination: Email address or phone number. None for internal.
        text_body: Plain-text alternative (email only).
    """

    message_id: str
    recipient_id: str
    subject: str
    body: str
    destination: str | None = None
    text_body: str | None = None


@dataclass
class ChannelResult:
    """Outcome of one delivery attempt.

    Attributes:
        channel: Channel that made the attempt.
        status: SENT or FAILED.
        message_id: Provider message ID, when the provider returns one.
        error_message: Why the attempt failed.
        sent_at: When the attempt finished.
        metadata: Provider-specific details (transport used, recipient).
    """

    channel: ChannelType
    status: DeliveryStatus
    message_id: str | None = None
    error_message: str | None = None
    sent_at: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status is DeliveryStatus.SENT

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "status": self.status.value,
            "message_id": self.message_id,
            "error_message": self.error_message,
            "sent_at": self.sent_at.isoformat(),
            "metadata": self.metadata,
        }


class BaseChannel(ABC):
    """Base for delivery channels.

    Subclasses implement send(). Callers go through deliver(), which
    enforces timeout_seconds and turns a timeout into a failed result.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    @abstractmethod
    def channel_type(self) -> ChannelType: ...

    @abstractmethod
    async def send(self, request: DeliveryRequest) -> ChannelResult:
        """Deliver the request through this channel."""

    async def deliver(self, request: DeliveryRequest) -> ChannelResult:
        """Call send() under the channel deadline. Cancellation propagates."""
        try:
            return await asyncio.wait_for(self.send(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning(
                "%s delivery to %s timed out after %ss",
                self.channel_type.value,
                request.recipient_id,
                self.timeout_seconds,
            )
            return self.create_failure_result(
                f"timed out after {self.timeout_seconds:g}s",
                metadata={"recipient": request.recipient_id},
            )

    def create_success_result(
        self,
        message_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ChannelResult:
        return ChannelResult(
            channel=self.channel_type,
            status=DeliveryStatus.SENT,
            message_id=message_id,
            metadata=metadata or {},
        )

    def create_failure_result(
        self,
        error_message: str,
        metadata: dict[str, Any] | None = None,
    ) -> ChannelResult:
        return ChannelResult(
            channel=self.channel_type,
            status=DeliveryStatus.FAILED,
            error_message=error_message,
            metadata=metadata or {},
        )
