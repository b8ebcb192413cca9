# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Internal (in-app) notification channel.

Internal delivery means the message shows up in the student's inbox.
The message row already exists, so delivering only records the
per-recipient receipt through the tracker.
"""

from src.domains.messaging.errors import MessagingError
from src.domains.messaging.tracker import DeliveryTracker
from src.infrastructure.notifications.channels.base import (
    DEFAULT_TIMEOUT_SECONDS,
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryRequest,
)


class InternalChannel(BaseChannel):
    """Records internal inbox delivery for a recipient."""

    def __init__(
        self,
        tracker: DeliveryTracker,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the internal channel.

        Args:
            tracker: Receipt tracker bound to the current session.
            timeout_seconds: Deadline for a single send.
        """
        super().__init__(timeout_seconds)
        self.tracker = tracker

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        return ChannelType.INTERNAL

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        """Record the internal delivery receipt.

        Args:
            request: The delivery request.

        Returns:
            ChannelResult with delivery status.
        """
        try:
            created = await self.tracker.mark_delivered(
                request.message_id,
                request.recipient_id,
                ChannelType.INTERNAL.value,
            )
        except MessagingError as e:
            self.logger.error(
                "Failed to record internal delivery for %s: %s",
                request.recipient_id,
                str(e),
            )
            return self.create_failure_result(str(e))

        return self.create_success_result(
            metadata={"recipient": request.recipient_id, "new_receipt": created},
        )
