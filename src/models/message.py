# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Internal message schemas.

This module defines the request/response schemas for internal messages:
the closed recipient rule variant, delivery channel toggles, receipts
and the aggregate statistics returned to staff.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MAX_BODY_LENGTH = 2000


class MessageType(str, Enum):
    """Kinds of internal messages."""

    NOTIFICATION = "notification"
    ANNOUNCEMENT = "announcement"
    REMINDER = "reminder"
    EVENT = "event"
    INFO = "info"


class MessagePriority(str, Enum):
    """Message priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MessageStatus(str, Enum):
    """Message lifecycle states. SENT is terminal."""

    DRAFT = "draft"
    SENT = "sent"


class DeliveryChannel(str, Enum):
    """Channels a message can be delivered through."""

    INTERNAL = "internal"
    EMAIL = "email"
    WHATSAPP = "whatsapp"


class RecipientKind(str, Enum):
    """Discriminator values of the recipient rule."""

    SPECIFIC_STUDENT = "specific_student"
    ALL_STUDENTS = "all_students"
    SPECIFIC_CLASS = "specific_class"


class RecipientFilters(BaseModel):
    """Optional narrowing of the all-students rule."""

    instrument: str | None = None
    level: str | None = None

    def is_empty(self) -> bool:
        return self.instrument is None and self.level is None


class SpecificStudentRule(BaseModel):
    """Address a single student."""

    kind: Literal["specific_student"] = "specific_student"
    student_id: str = Field(min_length=1)


class AllStudentsRule(BaseModel):
    """Address every active student, optionally filtered."""

    kind: Literal["all_students"] = "all_students"
    filters: RecipientFilters | None = None


class SpecificClassRule(BaseModel):
    """Address the active roster of one class."""

    kind: Literal["specific_class"] = "specific_class"
    class_id: str = Field(min_length=1)


RecipientRule = Annotated[
    SpecificStudentRule | AllStudentsRule | SpecificClassRule,
    Field(discriminator="kind"),
]


class DeliveryChannels(BaseModel):
    """Independently togglable delivery channels."""

    internal: bool = True
    email: bool = False
    whatsapp: bool = False

    def enabled(self) -> list[DeliveryChannel]:
        """Return enabled channels in dispatch order."""
        flags = {
            DeliveryChannel.INTERNAL: self.internal,
            DeliveryChannel.EMAIL: self.email,
            DeliveryChannel.WHATSAPP: self.whatsapp,
        }
        return [channel for channel, on in flags.items() if on]


class MessageMetadata(BaseModel):
    """Optional classification metadata."""

    tags: list[str] = Field(default_factory=list)
    category: str | None = Field(default=None, max_length=100)
    template: str | None = Field(default=None, max_length=100)


class MessageCreateRequest(BaseModel):
    """Request to create a draft message."""

    recipient: RecipientRule = Field(
        default_factory=AllStudentsRule,
        description="Who the message is addressed to",
    )
    subject: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=MAX_BODY_LENGTH)
    message_type: MessageType = MessageType.NOTIFICATION
    priority: MessagePriority = MessagePriority.MEDIUM
    delivery_channels: DeliveryChannels = Field(default_factory=DeliveryChannels)
    scheduled_for: datetime | None = Field(
        default=None,
        description="Stored only, never dispatched automatically",
    )
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)


class MessageListFilters(BaseModel):
    """Staff-side filters for listing messages."""

    message_type: MessageType | None = None
    status: MessageStatus | None = None
    priority: MessagePriority | None = None
    sender_id: str | None = None
    recipient_kind: RecipientKind | None = None
    limit: int = Field(default=50, ge=1, le=200)
    skip: int = Field(default=0, ge=0)


class DeliveryReceipt(BaseModel):
    """One recorded delivery of a message to a recipient on a channel."""

    model_config = ConfigDict(from_attributes=True)

    recipient_id: str
    channel: DeliveryChannel
    delivered_at: datetime


class ReadReceipt(BaseModel):
    """One recorded read of a message by a recipient."""

    model_config = ConfigDict(from_attributes=True)

    recipient_id: str
    read_at: datetime


class MessageResponse(BaseModel):
    """Message as returned by the service layer."""

    id: str
    sender_id: str
    recipient: RecipientRule
    subject: str
    body: str
    message_type: MessageType
    priority: MessagePriority
    status: MessageStatus
    delivery_channels: DeliveryChannels
    scheduled_for: datetime | None = None
    sent_at: datetime | None = None
    metadata: MessageMetadata
    delivered_to: list[DeliveryReceipt] = Field(default_factory=list)
    read_by: list[ReadReceipt] = Field(default_factory=list)
    delivery_count: int = 0
    read_count: int = 0
    created_at: datetime
    updated_at: datetime


class MessageListResponse(BaseModel):
    """Paged list of messages."""

    items: list[MessageResponse]
    total: int
    limit: int
    skip: int


class MessageStats(BaseModel):
    """Aggregate message counts for the staff dashboard."""

    total: int = 0
    sent: int = 0
    drafts: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
