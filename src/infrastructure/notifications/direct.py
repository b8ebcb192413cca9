# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Direct sends and channel configuration checks.

Staff use these to check that SMTP and WhatsApp are set up and to send a
one-off email or WhatsApp message to a single address. Direct sends
bypass the message store, so no receipts are written.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from src.core.config import Settings
from src.infrastructure.notifications.channels import (
    ChannelResult,
    ChannelType,
    DeliveryRequest,
    EmailChannel,
    WhatsAppChannel,
    WhatsAppCloudTransport,
    WhatsAppTransportError,
    WhatsAppWebTransport,
)
from src.infrastructure.notifications.templates import ContentTemplater

logger = logging.getLogger(__name__)

TEST_MESSAGE = (
    "Este es un mensaje de prueba del sistema de notificaciones. "
    "Si lo recibes, la configuración está funcionando correctamente."
)
TEST_SUBJECT = "Mensaje de Prueba"

DIRECT_CHANNELS = frozenset({ChannelType.EMAIL, ChannelType.WHATSAPP})


@dataclass
class GatewayStatus:
    """State of the WhatsApp Web session gateway."""

    configured: bool
    ready: bool = False
    error: str | None = None


@dataclass
class ChannelStatus:
    """Which outbound channels can currently deliver.

    Attributes:
        email_configured: SMTP host, credentials and sender are set.
        whatsapp_web: Gateway configuration and session readiness.
        whatsapp_cloud_configured: Cloud API credentials are set.
    """

    email_configured: bool
    whatsapp_web: GatewayStatus
    whatsapp_cloud_configured: bool

    @property
    def whatsapp_available(self) -> bool:
        return self.whatsapp_web.ready or self.whatsapp_cloud_configured

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": {"configured": self.email_configured},
            "whatsapp_web": {
                "configured": self.whatsapp_web.configured,
                "ready": self.whatsapp_web.ready,
                "error": self.whatsapp_web.error,
            },
            "whatsapp_cloud": {"configured": self.whatsapp_cloud_configured},
            "services": {
                "email": self.email_configured,
                "whatsapp": self.whatsapp_available,
            },
        }


class DirectSender:
    """Sends single messages through email or WhatsApp.

    Attributes:
        templater: Wraps content in the email or WhatsApp envelope.
        email: Email channel.
        whatsapp: WhatsApp channel with its transports.
    """

    def __init__(
        self,
        templater: ContentTemplater,
        email: EmailChannel,
        whatsapp: WhatsAppChannel,
    ) -> None:
        self.templater = templater
        self.email = email
        self.whatsapp = whatsapp

    @classmethod
    def from_settings(cls, settings: Settings) -> "DirectSender":
        """Build a sender with both channels wired from settings."""
        return cls(
            templater=ContentTemplater.from_settings(settings),
            email=EmailChannel(
                settings.smtp,
                timeout_seconds=settings.notifications.channel_timeout_seconds,
            ),
            whatsapp=WhatsAppChannel.from_settings(settings.whatsapp, settings.notifications),
        )

    async def channel_status(self) -> ChannelStatus:
        """Report channel configuration and ask the gateway if it is ready."""
        web = next(
            (t for t in self.whatsapp.transports if isinstance(t, WhatsAppWebTransport)),
            None,
        )
        gateway = GatewayStatus(configured=web is not None)
        if web is not None:
            try:
                gateway.ready = await asyncio.wait_for(
                    web.is_ready(), timeout=self.whatsapp.timeout_seconds
                )
            except asyncio.TimeoutError:
                gateway.error = (
                    f"WhatsApp Web gateway timed out after {self.whatsapp.timeout_seconds:g}s"
                )
            except WhatsAppTransportError as e:
                gateway.error = str(e)
            if gateway.error:
                logger.warning("WhatsApp Web gateway status unavailable: %s", gateway.error)

        return ChannelStatus(
            email_configured=self.email.settings.is_configured,
            whatsapp_web=gateway,
            whatsapp_cloud_configured=any(
                isinstance(t, WhatsAppCloudTransport) for t in self.whatsapp.transports
            ),
        )

    async def send(
        self,
        channel: ChannelType,
        recipient: str,
        content: str,
        subject: str | None = None,
    ) -> ChannelResult:
        """Send content to one email address or phone number.

        Args:
            channel: email or whatsapp.
            recipient: Email address or phone number.
            content: Message text. ``**bold**`` markup is rendered.
            subject: Email subject. Defaults to the school name.

        Returns:
            ChannelResult from the channel.

        Raises:
            ValueError: If the channel cannot be used for direct sends.
        """
        channel = ChannelType(channel)
        if channel not in DIRECT_CHANNELS:
            raise ValueError(f"Direct sends support email and whatsapp, not {channel.value}")

        if channel is ChannelType.EMAIL:
            request = DeliveryRequest(
                message_id="",
                recipient_id=recipient,
                subject=subject or self.templater.school_name,
                body=self.templater.to_email_html(content),
                destination=recipient,
                text_body=self.templater.plain_text(content),
            )
            result = await self.email.deliver(request)
        else:
            request = DeliveryRequest(
                message_id="",
                recipient_id=recipient,
                subject=subject or "",
                body=self.templater.to_whatsapp(content),
                destination=recipient,
            )
            result = await self.whatsapp.deliver(request)

        if result.succeeded:
            logger.info("Direct %s sent to %s", channel.value, recipient)
        else:
            logger.warning(
                "Direct %s to %s failed: %s",
                channel.value,
                recipient,
                result.error_message,
            )
        return result

    async def send_test(self, channel: ChannelType, recipient: str) -> ChannelResult:
        """Send the fixed test message to check a channel end to end."""
        return await self.send(
            channel,
            recipient,
            TEST_MESSAGE,
            subject=f"{TEST_SUBJECT} - {self.templater.school_name}",
        )
