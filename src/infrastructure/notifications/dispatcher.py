# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-recipient, per-channel delivery.

The dispatcher walks recipients sequentially, in the order the resolver
returned them, and tries the enabled channels in a fixed order:
internal, then email, then WhatsApp. A channel failure is recorded in
the recipient's outcome and never stops the remaining channels or
recipients.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from src.core.config import Settings
from src.domains.directory.types import Recipient
from src.domains.messaging.errors import MessagingError
from src.domains.messaging.tracker import DeliveryTracker
from src.infrastructure.database.models.message import Message
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
from src.infrastructure.notifications.templates import ContentTemplater

logger = logging.getLogger(__name__)

# Prefixes used in per-recipient error strings shown to staff.
ERROR_LABELS = {
    ChannelType.INTERNAL: "Interno",
    ChannelType.EMAIL: "Email",
    ChannelType.WHATSAPP: "WhatsApp",
}


@dataclass
class DispatchEnvelope:
    """What to deliver, independent of who receives it.

    Attributes:
        message_id: Persisted message the receipts belong to. None when
            no message could be stored, in which case internal delivery
            fails and external receipts are not recorded.
        subject: Subject line (email).
        bodies: Canonical body per channel. Channels without an entry
            use the internal body.
        channels: Channels requested for this delivery.
    """

    message_id: str | None
    subject: str
    bodies: dict[ChannelType, str]
    channels: frozenset[ChannelType]

    @classmethod
    def for_message(cls, message: Message) -> "DispatchEnvelope":
        """Envelope delivering a stored message as-is on its enabled channels."""
        return cls(
            message_id=message.id,
            subject=message.subject,
            bodies={ChannelType.INTERNAL: message.body},
            channels=frozenset(ChannelType(c) for c in message.enabled_channels),
        )

    def body_for(self, channel: ChannelType) -> str:
        return self.bodies.get(channel, self.bodies[ChannelType.INTERNAL])


@dataclass
class ChannelTally:
    """Sent/failed counters for one channel."""

    sent: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.sent + self.failed

    def to_dict(self) -> dict[str, int]:
        return {"enviados": self.sent, "errores": self.failed}


@dataclass
class RecipientOutcome:
    """Delivery outcome for one recipient.

    attempted holds the channels that were tried. A channel that was
    attempted but is not flagged as delivered failed.
    """

    recipient_id: str
    display_name: str
    rut: str | None = None
    internal: bool = False
    email: bool = False
    whatsapp: bool = False
    errors: list[str] = field(default_factory=list)
    attempted: set[ChannelType] = field(default_factory=set)

    @classmethod
    def for_recipient(cls, recipient: Recipient) -> "RecipientOutcome":
        return cls(
            recipient_id=recipient.id,
            display_name=recipient.display_name,
            rut=recipient.rut,
        )

    def record(self, result: ChannelResult) -> None:
        """Fold one channel result into the outcome."""
        self.attempted.add(result.channel)
        if result.succeeded:
            setattr(self, result.channel.value, True)
            return
        reason = result.error_message or "unknown error"
        self.errors.append(f"{ERROR_LABELS[result.channel]}: {reason}")

    def delivered(self, channel: ChannelType) -> bool:
        return bool(getattr(self, channel.value))

    def to_dict(self) -> dict[str, Any]:
        return {
            "estudiante": self.display_name,
            "rut": self.rut,
            "internos": self.internal,
            "whatsapp": self.whatsapp,
            "email": self.email,
            "errores": list(self.errors),
        }


@dataclass
class OutcomeReport:
    """Aggregate outcome of a fan-out."""

    internal: ChannelTally = field(default_factory=ChannelTally)
    email: ChannelTally = field(default_factory=ChannelTally)
    whatsapp: ChannelTally = field(default_factory=ChannelTally)
    details: list[RecipientOutcome] = field(default_factory=list)

    def tally(self, channel: ChannelType) -> ChannelTally:
        return getattr(self, channel.value)

    def add(self, outcome: RecipientOutcome) -> None:
        """Append a recipient outcome and update channel counters."""
        for channel in outcome.attempted:
            tally = self.tally(channel)
            if outcome.delivered(channel):
                tally.sent += 1
            else:
                tally.failed += 1
        self.details.append(outcome)

    @property
    def total_sent(self) -> int:
        return self.internal.sent + self.email.sent + self.whatsapp.sent

    @property
    def total_errors(self) -> int:
        return self.internal.failed + self.email.failed + self.whatsapp.failed

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the keys the school UI reads."""
        return {
            "internos": self.internal.to_dict(),
            "whatsapp": self.whatsapp.to_dict(),
            "email": self.email.to_dict(),
            "detalles": [detail.to_dict() for detail in self.details],
        }


class DeliveryDispatcher:
    """Delivers envelopes to recipients over the configured channels.

    Attributes:
        templater: Renders bodies per channel and recipient.
        tracker: Records external delivery receipts.
        channels: Channel implementations by type.
    """

    def __init__(
        self,
        templater: ContentTemplater,
        tracker: DeliveryTracker,
        channels: dict[ChannelType, BaseChannel],
    ) -> None:
        self.templater = templater
        self.tracker = tracker
        self.channels = channels

    @classmethod
    def from_settings(
        cls,
        tracker: DeliveryTracker,
        settings: Settings,
    ) -> "DeliveryDispatcher":
        """Build a dispatcher with every channel wired from settings."""
        timeout = settings.notifications.channel_timeout_seconds
        return cls(
            templater=ContentTemplater.from_settings(settings),
            tracker=tracker,
            channels={
                ChannelType.INTERNAL: InternalChannel(tracker, timeout_seconds=timeout),
                ChannelType.EMAIL: EmailChannel(settings.smtp, timeout_seconds=timeout),
                ChannelType.WHATSAPP: WhatsAppChannel.from_settings(
                    settings.whatsapp,
                    settings.notifications,
                ),
            },
        )

    async def deliver_all(
        self,
        envelope: DispatchEnvelope,
        recipients: list[Recipient],
    ) -> OutcomeReport:
        """Deliver to every recipient, one at a time, in the given order.

        Args:
            envelope: What to deliver.
            recipients: Resolved recipients.

        Returns:
            Aggregate outcome report.
        """
        report = OutcomeReport()
        for recipient in recipients:
            report.add(await self.deliver_to_recipient(envelope, recipient))

        logger.info(
            "Dispatched message %s to %d recipients: %d sent, %d errors",
            envelope.message_id,
            len(recipients),
            report.total_sent,
            report.total_errors,
        )
        return report

    async def deliver_to_recipient(
        self,
        envelope: DispatchEnvelope,
        recipient: Recipient,
    ) -> RecipientOutcome:
        """Deliver to one recipient on each applicable channel.

        Email is attempted only when the recipient has an address and
        WhatsApp only when the recipient has a phone number.

        Args:
            envelope: What to deliver.
            recipient: Target recipient.

        Returns:
            The recipient's outcome. Channel failures are recorded in it,
            never raised.
        """
        outcome = RecipientOutcome.for_recipient(recipient)

        if ChannelType.INTERNAL in envelope.channels:
            await self._attempt(ChannelType.INTERNAL, envelope, recipient, outcome)

        if ChannelType.EMAIL in envelope.channels and recipient.has_email:
            await self._attempt(ChannelType.EMAIL, envelope, recipient, outcome)

        if ChannelType.WHATSAPP in envelope.channels and recipient.has_phone:
            await self._attempt(ChannelType.WHATSAPP, envelope, recipient, outcome)

        return outcome

    async def _attempt(
        self,
        channel_type: ChannelType,
        envelope: DispatchEnvelope,
        recipient: Recipient,
        outcome: RecipientOutcome,
    ) -> None:
        channel = self.channels.get(channel_type)
        if channel is None:
            outcome.record(_failure(channel_type, "channel not configured"))
            return

        if channel_type is ChannelType.INTERNAL and envelope.message_id is None:
            outcome.record(_failure(channel_type, "no sender available to store the message"))
            return

        try:
            request = self._build_request(channel_type, envelope, recipient)
            result = await channel.deliver(request)
        except Exception as e:
            logger.error(
                "%s delivery to %s raised: %s",
                channel_type.value,
                recipient.id,
                str(e),
                exc_info=True,
            )
            result = channel.create_failure_result(str(e) or e.__class__.__name__)

        outcome.record(result)

        if result.succeeded and channel_type is not ChannelType.INTERNAL:
            await self._record_external_delivery(channel_type, envelope, recipient)

    def _build_request(
        self,
        channel_type: ChannelType,
        envelope: DispatchEnvelope,
        recipient: Recipient,
    ) -> DeliveryRequest:
        body = envelope.body_for(channel_type)
        destination = None
        text_body = None

        if channel_type is ChannelType.EMAIL:
            destination = recipient.email
            text_body = self.templater.plain_text(self.templater.substitute(body, recipient))
        elif channel_type is ChannelType.WHATSAPP:
            destination = recipient.phone

        return DeliveryRequest(
            message_id=envelope.message_id or "",
            recipient_id=recipient.id,
            subject=envelope.subject,
            body=self.templater.render(body, recipient, channel_type),
            destination=destination,
            text_body=text_body,
        )

    async def _record_external_delivery(
        self,
        channel_type: ChannelType,
        envelope: DispatchEnvelope,
        recipient: Recipient,
    ) -> None:
        if envelope.message_id is None:
            return
        # A failed receipt write rolls back only its own savepoint, so the
        # session stays usable for the remaining recipients.
        try:
            async with self.tracker.db.begin_nested():
                await self.tracker.mark_delivered(
                    envelope.message_id,
                    recipient.id,
                    channel_type.value,
                )
        except (MessagingError, SQLAlchemyError) as e:
            logger.error(
                "Delivered %s to %s but could not record the receipt: %s",
                channel_type.value,
                recipient.id,
                str(e),
            )


def _failure(channel_type: ChannelType, reason: str) -> ChannelResult:
    return ChannelResult(
        channel=channel_type,
        status=DeliveryStatus.FAILED,
        error_message=reason,
    )
