# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Internal message service.

This module provides the MessageService class for:
- Creating draft messages and sending them exactly once
- Student inbox queries (all messages or unread only)
- Read and delivery receipts
- Staff listing, statistics and draft deletion
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from src.core.config import Settings, get_settings
from src.domains.directory.stores import SqlClassStore, SqlStudentStore
from src.domains.directory.types import ClassStore
from src.domains.messaging.errors import (
    MessageAlreadySentError,
    MessageConflictError,
    MessageNotDeletableError,
    MessageNotFoundError,
)
from src.domains.messaging.recipients import RecipientResolver
from src.domains.messaging.repository import MessageRepository
from src.domains.messaging.tracker import DeliveryTracker
from src.infrastructure.database.models.message import Message
from src.infrastructure.notifications.dispatcher import DeliveryDispatcher, DispatchEnvelope
from src.models.message import (
    AllStudentsRule,
    DeliveryChannel,
    DeliveryChannels,
    DeliveryReceipt,
    MessageCreateRequest,
    MessageListFilters,
    MessageListResponse,
    MessageMetadata,
    MessageResponse,
    MessageStats,
    ReadReceipt,
    RecipientFilters,
    RecipientRule,
    SpecificClassRule,
    SpecificStudentRule,
)
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def rule_to_columns(rule: RecipientRule) -> tuple[str, str | None, dict | None]:
    """Split a recipient rule into (kind, ref, filters) column values."""
    match rule:
        case SpecificStudentRule(student_id=student_id):
            return rule.kind, student_id, None
        case SpecificClassRule(class_id=class_id):
            return rule.kind, class_id, None
        case AllStudentsRule(filters=filters):
            if filters is None or filters.is_empty():
                return rule.kind, None, None
            return rule.kind, None, filters.model_dump(exclude_none=True)
        case _:
            raise ValueError(f"Unsupported recipient rule: {rule!r}")


def rule_from_message(message: Message) -> RecipientRule:
    """Rebuild the recipient rule stored on a message row."""
    if message.recipient_kind == "specific_student":
        return SpecificStudentRule(student_id=message.recipient_ref)
    if message.recipient_kind == "specific_class":
        return SpecificClassRule(class_id=message.recipient_ref)
    filters = message.recipient_filters
    return AllStudentsRule(filters=RecipientFilters(**filters) if filters else None)


def to_response(message: Message) -> MessageResponse:
    """Convert a message row with its receipts to a response."""
    return MessageResponse(
        id=message.id,
        sender_id=message.sender_id,
        recipient=rule_from_message(message),
        subject=message.subject,
        body=message.body,
        message_type=message.message_type,
        priority=message.priority,
        status=message.status,
        delivery_channels=DeliveryChannels(
            internal=message.deliver_internal,
            email=message.deliver_email,
            whatsapp=message.deliver_whatsapp,
        ),
        scheduled_for=ensure_utc(message.scheduled_for),
        sent_at=ensure_utc(message.sent_at),
        metadata=MessageMetadata(
            tags=message.tags or [],
            category=message.category,
            template=message.template,
        ),
        delivered_to=[
            DeliveryReceipt(
                recipient_id=d.recipient_id,
                channel=d.channel,
                delivered_at=ensure_utc(d.delivered_at),
            )
            for d in message.deliveries
        ],
        read_by=[
            ReadReceipt(recipient_id=r.recipient_id, read_at=ensure_utc(r.read_at))
            for r in message.reads
        ],
        delivery_count=len(message.deliveries),
        read_count=len(message.reads),
        created_at=ensure_utc(message.created_at),
        updated_at=ensure_utc(message.updated_at),
    )


class MessageService:
    """Service for internal messages.

    Stateless over an async session. Collaborators default to the SQL
    implementations and can be injected for tests.

    Attributes:
        db: Async database session.
        repository: Message store.
        tracker: Receipt tracker.
        resolver: Recipient resolver.
        classes: Class lookups for the inbox query.
        dispatcher: Delivery dispatcher used when sending.
    """

    def __init__(
        self,
        db: AsyncSession,
        repository: MessageRepository | None = None,
        tracker: DeliveryTracker | None = None,
        resolver: RecipientResolver | None = None,
        classes: ClassStore | None = None,
        dispatcher: DeliveryDispatcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize message service.

        Args:
            db: Async database session.
            repository: Message store.
            tracker: Receipt tracker.
            resolver: Recipient resolver.
            classes: Class lookups.
            dispatcher: Delivery dispatcher.
            settings: Settings used to build the default dispatcher.
        """
        self.db = db
        self.repository = repository or MessageRepository(db)
        self.tracker = tracker or DeliveryTracker(db)
        self.classes = classes or SqlClassStore(db)
        self.resolver = resolver or RecipientResolver(SqlStudentStore(db), self.classes)
        self.dispatcher = dispatcher or DeliveryDispatcher.from_settings(
            self.tracker, settings or get_settings()
        )

    async def create_message(
        self,
        request: MessageCreateRequest,
        sender_id: str,
    ) -> MessageResponse:
        """Create a draft message.

        Args:
            request: Message data.
            sender_id: Staff user creating the message.

        Returns:
            The created draft.
        """
        kind, ref, filters = rule_to_columns(request.recipient)
        channels = request.delivery_channels

        message = Message(
            sender_id=sender_id,
            recipient_kind=kind,
            recipient_ref=ref,
            recipient_filters=filters,
            subject=request.subject,
            body=request.body,
            message_type=request.message_type.value,
            priority=request.priority.value,
            status="draft",
            deliver_internal=channels.internal,
            deliver_email=channels.email,
            deliver_whatsapp=channels.whatsapp,
            scheduled_for=request.scheduled_for,
            tags=list(request.metadata.tags),
            category=request.metadata.category,
            template=request.metadata.template,
            created_by=sender_id,
        )
        message = await self.repository.add(message)

        logger.info("Created draft message %s (%s)", message.id, kind)
        return to_response(message)

    async def send_message(self, message_id: str) -> MessageResponse:
        """Send a draft message and fan it out to its recipients.

        Args:
            message_id: Draft to send.

        Returns:
            The sent message with its delivery receipts.

        Raises:
            MessageNotFoundError: If the message does not exist.
            MessageAlreadySentError: If the message is not a draft.
            MessageConflictError: If a concurrent writer changed it first.
            RecipientResolutionError: If recipients could not be resolved.
        """
        message = await self._get_or_raise(message_id)
        if not message.is_draft:
            raise MessageAlreadySentError(f"Message {message_id} has already been sent")

        message.status = "sent"
        message.sent_at = max(utc_now(), ensure_utc(message.created_at))
        try:
            await self.repository.save(message)
        except StaleDataError as e:
            raise MessageConflictError(
                f"Message {message_id} was modified concurrently"
            ) from e

        recipients = await self.resolver.resolve(rule_from_message(message))
        report = await self.dispatcher.deliver_all(
            DispatchEnvelope.for_message(message), recipients
        )

        logger.info(
            "Sent message %s to %d recipients (%d deliveries, %d errors)",
            message_id,
            len(recipients),
            report.total_sent,
            report.total_errors,
        )
        return to_response(await self.repository.get(message_id, fresh=True))

    async def get_message(self, message_id: str) -> MessageResponse:
        """Get a message with its receipts.

        Raises:
            MessageNotFoundError: If the message does not exist.
        """
        return to_response(await self._get_or_raise(message_id))

    async def list_messages(self, filters: MessageListFilters) -> MessageListResponse:
        """List messages for staff, newest first."""
        messages, total = await self.repository.list_messages(filters)
        return MessageListResponse(
            items=[to_response(m) for m in messages],
            total=total,
            limit=filters.limit,
            skip=filters.skip,
        )

    async def get_student_messages(
        self,
        student_id: str,
        unread_only: bool = False,
        limit: int = 50,
        skip: int = 0,
    ) -> list[MessageResponse]:
        """Get sent messages addressed to a student, newest first.

        A message is addressed to the student when it names the student,
        targets a class the student is actively enrolled in, or targets
        all students with filters matching the student's instrument and
        level.

        Args:
            student_id: Student ID.
            unread_only: Exclude messages the student already read.
            limit: Maximum number of messages.
            skip: Number of messages to skip.

        Returns:
            List of messages.
        """
        class_ids = await self.classes.find_class_ids_for_student(student_id)
        messages = await self.repository.find_for_student(
            student_id,
            class_ids,
            unread_only=unread_only,
            limit=limit,
            skip=skip,
        )
        return [to_response(m) for m in messages]

    async def get_unread_messages(self, student_id: str) -> list[MessageResponse]:
        """Get messages the student has not read yet."""
        return await self.get_student_messages(student_id, unread_only=True)

    async def mark_as_read(self, message_id: str, student_id: str) -> MessageResponse:
        """Record that a student read a message. Idempotent.

        Raises:
            MessageNotFoundError: If the message does not exist.
            MessageNotSentError: If the message is still a draft.
        """
        created = await self.tracker.mark_read(message_id, student_id)
        if created:
            logger.info("Message %s read by %s", message_id, student_id)
        return to_response(await self.repository.get(message_id, fresh=True))

    async def mark_as_delivered(
        self,
        message_id: str,
        student_id: str,
        channel: DeliveryChannel | str = DeliveryChannel.INTERNAL,
    ) -> MessageResponse:
        """Record that a message reached a student on a channel. Idempotent.

        Raises:
            MessageNotFoundError: If the message does not exist.
            MessageNotSentError: If the message is still a draft.
            InvalidChannelError: If the channel is unknown.
        """
        await self.tracker.mark_delivered(message_id, student_id, channel)
        return to_response(await self.repository.get(message_id, fresh=True))

    async def get_message_stats(self) -> MessageStats:
        """Aggregate message counts by status, type and priority."""
        by_status = await self.repository.count_by("status")
        return MessageStats(
            total=sum(by_status.values()),
            sent=by_status.get("sent", 0),
            drafts=by_status.get("draft", 0),
            by_type=await self.repository.count_by("message_type"),
            by_priority=await self.repository.count_by("priority"),
        )

    async def delete_message(self, message_id: str) -> None:
        """Delete a draft message.

        Raises:
            MessageNotFoundError: If the message does not exist.
            MessageNotDeletableError: If the message has been sent.
        """
        message = await self._get_or_raise(message_id)
        if not message.is_draft:
            raise MessageNotDeletableError("Only draft messages can be deleted")

        await self.repository.delete(message)
        logger.info("Deleted draft message %s", message_id)

    async def _get_or_raise(self, message_id: str) -> Message:
        message = await self.repository.get(message_id)
        if message is None:
            raise MessageNotFoundError(f"Message {message_id} not found")
        return message
