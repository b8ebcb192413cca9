# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Delivery and read receipt tracking.

Receipts are written with an atomic insert-if-absent against the unique
constraints of message_deliveries and message_reads. Two concurrent
callers can never both append, and the first timestamp always wins.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.messaging.errors import (
    InvalidChannelError,
    MessageNotFoundError,
    MessageNotSentError,
    TrackerError,
)
from src.infrastructure.database.models.message import (
    DELIVERY_CHANNELS,
    Message,
    MessageDelivery,
    MessageRead,
)
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DeliveryTracker:
    """Idempotent mutators for per-recipient delivery and read state.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the tracker.

        Args:
            db: Async database session.
        """
        self.db = db

    async def mark_delivered(
        self,
        message_id: str,
        recipient_id: str,
        channel: str,
    ) -> bool:
        """Record that a recipient received a message on a channel.

        Args:
            message_id: Message ID.
            recipient_id: Student ID.
            channel: internal, email or whatsapp.

        Returns:
            True if a new receipt was written, False if one already existed.

        Raises:
            InvalidChannelError: If channel is unknown.
            MessageNotFoundError: If the message does not exist.
            MessageNotSentError: If the message is still a draft.
        """
        channel = getattr(channel, "value", channel)
        if channel not in DELIVERY_CHANNELS:
            raise InvalidChannelError(f"Unknown delivery channel: {channel!r}")

        await self._ensure_sent(message_id)

        created = await self._insert_if_absent(
            MessageDelivery,
            {
                "message_id": message_id,
                "recipient_id": recipient_id,
                "channel": channel,
                "delivered_at": utc_now(),
            },
            ["message_id", "recipient_id", "channel"],
        )
        if created:
            logger.debug(
                "Delivery recorded: message=%s, recipient=%s, channel=%s",
                message_id,
                recipient_id,
                channel,
            )
        return created

    async def mark_read(self, message_id: str, recipient_id: str) -> bool:
        """Record that a recipient read a message.

        Re-marking keeps the timestamp of the first read.

        Returns:
            True if a new receipt was written, False if one already existed.

        Raises:
            MessageNotFoundError: If the message does not exist.
            MessageNotSentError: If the message is still a draft.
        """
        await self._ensure_sent(message_id)

        created = await self._insert_if_absent(
            MessageRead,
            {
                "message_id": message_id,
                "recipient_id": recipient_id,
                "read_at": utc_now(),
            },
            ["message_id", "recipient_id"],
        )
        if created:
            logger.debug("Read recorded: message=%s, recipient=%s", message_id, recipient_id)
        return created

    async def _ensure_sent(self, message_id: str) -> None:
        result = await self.db.execute(
            select(Message.status).where(Message.id == message_id)
        )
        status = result.scalar_one_or_none()
        if status is None:
            raise MessageNotFoundError(f"Message {message_id} not found")
        if status != "sent":
            raise MessageNotSentError(f"Message {message_id} has not been sent")

    async def _insert_if_absent(
        self,
        model: type[MessageDelivery] | type[MessageRead],
        values: dict[str, Any],
        conflict_columns: list[str],
    ) -> bool:
        dialect = self.db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise TrackerError(f"Unsupported database dialect: {dialect}")

        stmt = (
            insert(model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=conflict_columns)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1
