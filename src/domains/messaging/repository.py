# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Message record store.

Query helpers over the messages table. Receipts are written by
DeliveryTracker, never through this repository.
"""

from __future__ import annotations

import logging

from sqlalchemy import ColumnElement, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models.message import Message, MessageRead
from src.infrastructure.database.models.school import Student
from src.models.message import MessageListFilters

logger = logging.getLogger(__name__)


class MessageRepository:
    """Persistence for Message rows.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def add(self, message: Message) -> Message:
        """Stage a new message and flush so defaults are populated."""
        self.db.add(message)
        await self.db.flush()
        await self.db.refresh(message)
        return message

    async def get(self, message_id: str, fresh: bool = False) -> Message | None:
        """Load a message with its receipts.

        Args:
            message_id: Message ID.
            fresh: Reload receipts even if the row is already in the session.

        Returns:
            The message or None.
        """
        stmt = select(Message).where(Message.id == message_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, message: Message) -> Message:
        """Flush pending changes of a loaded message.

        Raises:
            sqlalchemy.orm.exc.StaleDataError: If another writer bumped the version.
        """
        await self.db.flush()
        return message

    async def delete(self, message: Message) -> None:
        await self.db.delete(message)
        await self.db.flush()

    async def list_messages(self, filters: MessageListFilters) -> tuple[list[Message], int]:
        """List messages matching staff filters, newest first.

        Returns:
            Tuple of (page of messages, total matching).
        """
        conditions = []
        if filters.message_type:
            conditions.append(Message.message_type == filters.message_type.value)
        if filters.status:
            conditions.append(Message.status == filters.status.value)
        if filters.priority:
            conditions.append(Message.priority == filters.priority.value)
        if filters.sender_id:
            conditions.append(Message.sender_id == filters.sender_id)
        if filters.recipient_kind:
            conditions.append(Message.recipient_kind == filters.recipient_kind.value)

        count_stmt = select(func.count()).select_from(Message)
        stmt = select(Message)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            stmt.order_by(Message.created_at.desc(), Message.id)
            .offset(filters.skip)
            .limit(filters.limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def find_for_student(
        self,
        student_id: str,
        class_ids: list[str],
        unread_only: bool = False,
        limit: int = 50,
        skip: int = 0,
    ) -> list[Message]:
        """Sent messages addressed to a student, newest first.

        A message is addressed to the student when its rule names the
        student, targets one of class_ids, or targets all students with
        filters the student's instrument and level satisfy.
        """
        addressed = [
            and_(
                Message.recipient_kind == "specific_student",
                Message.recipient_ref == student_id,
            ),
            and_(
                Message.recipient_kind == "all_students",
                _filter_matches("instrument", student_id),
                _filter_matches("level", student_id),
            ),
        ]
        if class_ids:
            addressed.append(
                and_(
                    Message.recipient_kind == "specific_class",
                    Message.recipient_ref.in_(class_ids),
                )
            )

        stmt = select(Message).where(Message.status == "sent", or_(*addressed))

        if unread_only:
            already_read = (
                select(MessageRead.id)
                .where(
                    MessageRead.message_id == Message.id,
                    MessageRead.recipient_id == student_id,
                )
                .exists()
            )
            stmt = stmt.where(~already_read)

        stmt = (
            stmt.order_by(Message.created_at.desc(), Message.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_by(self, column_name: str) -> dict[str, int]:
        """Count messages grouped by a column."""
        column = getattr(Message, column_name)
        stmt = select(column, func.count()).group_by(column)
        result = await self.db.execute(stmt)
        return {value: count for value, count in result.all()}


def _filter_matches(key: str, student_id: str) -> ColumnElement[bool]:
    """Whether an all-students filter key admits the given student.

    An absent or empty key admits everyone, the same way the recipient
    resolver ignores it.
    """
    wanted = Message.recipient_filters[key].as_string()
    actual = select(getattr(Student, key)).where(Student.id == student_id).scalar_subquery()
    return or_(wanted.is_(None), wanted == "", wanted == actual)
