# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Internal message models with per-recipient delivery and read receipts.

A message is addressed through a recipient rule (recipient_kind plus
recipient_ref / recipient_filters) and is resolved to concrete students
only when it is sent. Receipts live in their own append-only tables with
unique constraints so that recording them is an atomic insert-if-absent.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, new_uuid
from src.utils.datetime import utc_now

MESSAGE_STATUSES = ("draft", "sent")
DELIVERY_CHANNELS = ("internal", "email", "whatsapp")
RECIPIENT_KINDS = ("specific_student", "all_students", "specific_class")


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class Message(Base, TimestampMixin):
    """Internal message sent by staff to one or many students."""

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    sender_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    recipient_kind: Mapped[str] = mapped_column(String(32), nullable=False, default="all_students")
    recipient_ref: Mapped[str | None] = mapped_column(String(36), nullable=True)
    recipient_filters: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(20), nullable=False, default="notification")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    deliver_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deliver_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deliver_whatsapp: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    template: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    deliveries: Mapped[list["MessageDelivery"]] = relationship(
        back_populates="message",
        order_by="MessageDelivery.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    reads: Mapped[list["MessageRead"]] = relationship(
        back_populates="message",
        order_by="MessageRead.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(_in_clause("status", MESSAGE_STATUSES), name="ck_messages_status"),
        CheckConstraint(
            _in_clause("recipient_kind", RECIPIENT_KINDS),
            name="ck_messages_recipient_kind",
        ),
        Index("ix_messages_sender_created", "sender_id", "created_at"),
        Index("ix_messages_recipient_created", "recipient_ref", "created_at"),
        Index("ix_messages_status_scheduled", "status", "scheduled_for"),
        Index("ix_messages_type_priority", "message_type", "priority"),
    )

    @property
    def is_draft(self) -> bool:
        """Check if the message has not been sent yet."""
        return self.status == "draft"

    @property
    def enabled_channels(self) -> list[str]:
        """Delivery channels requested for this message, in dispatch order."""
        flags = {
            "internal": self.deliver_internal,
            "email": self.deliver_email,
            "whatsapp": self.deliver_whatsapp,
        }
        return [channel for channel in DELIVERY_CHANNELS if flags[channel]]


class MessageDelivery(Base):
    """Delivery receipt for one recipient on one channel."""

    __tablename__ = "message_deliveries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_id: Mapped[str] = mapped_column(String(36), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    delivered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    message: Mapped[Message] = relationship(back_populates="deliveries")

    __table_args__ = (
        UniqueConstraint(
            "message_id",
            "recipient_id",
            "channel",
            name="uq_message_deliveries_recipient_channel",
        ),
        CheckConstraint(
            _in_clause("channel", DELIVERY_CHANNELS),
            name="ck_message_deliveries_channel",
        ),
        Index("ix_message_deliveries_recipient_id", "recipient_id"),
    )


class MessageRead(Base):
    """Read receipt for one recipient."""

    __tablename__ = "message_reads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_id: Mapped[str] = mapped_column(String(36), nullable=False)
    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    message: Mapped[Message] = relationship(back_populates="reads")

    __table_args__ = (
        UniqueConstraint("message_id", "recipient_id", name="uq_message_reads_recipient"),
        Index("ix_message_reads_recipient_id", "recipient_id"),
    )
