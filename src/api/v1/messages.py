# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Internal message API endpoints.

This module provides endpoints for staff-authored messages:
- POST / - Create a draft message
- GET / - List messages with filtering
- GET /stats - Message counts by status, type and priority
- GET /{message_id} - Get message details with receipts
- POST /{message_id}/send - Send a draft to its recipients
- DELETE /{message_id} - Delete a draft

Student inbox endpoints:
- GET /students/{student_id} - Messages addressed to a student
- GET /students/{student_id}/unread - Unread messages for a student
- POST /{message_id}/read - Mark a message as read

Authoring, sending and listing require staff access. Students may only
read their own inbox.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import get_message_service, require_auth, require_staff
from src.api.middleware.auth import CurrentUser
from src.domains.messaging import (
    InvalidChannelError,
    MessageAlreadySentError,
    MessageConflictError,
    MessageNotDeletableError,
    MessageNotFoundError,
    MessageNotSentError,
    RecipientResolutionError,
)
from src.domains.messaging.service import MessageService
from src.models.message import (
    MessageCreateRequest,
    MessageListFilters,
    MessageListResponse,
    MessagePriority,
    MessageResponse,
    MessageStats,
    MessageStatus,
    MessageType,
    RecipientKind,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_inbox_access(current_user: CurrentUser, student_id: str) -> None:
    """Reject users reading another student's inbox."""
    if not current_user.can_read_inbox(student_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this inbox",
        )


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create message",
    description="Create a draft message. Requires staff access.",
)
async def create_message(
    data: MessageCreateRequest,
    current_user: CurrentUser = Depends(require_staff),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """Create a draft message.

    Args:
        data: Message creation request.
        current_user: Authenticated staff user, recorded as sender.
        service: Message service.

    Returns:
        Created draft.
    """
    logger.info(
        "Creating message '%s' for %s by %s",
        data.subject,
        data.recipient.kind,
        current_user.id,
    )
    return await service.create_message(data, sender_id=current_user.id)


@router.get(
    "",
    response_model=MessageListResponse,
    summary="List messages",
    description="List messages, newest first. Requires staff access.",
)
async def list_messages(
    message_type: Annotated[MessageType | None, Query(description="Filter by type")] = None,
    status_filter: Annotated[
        MessageStatus | None, Query(alias="status", description="Filter by status")
    ] = None,
    priority: Annotated[MessagePriority | None, Query(description="Filter by priority")] = None,
    sender_id: Annotated[str | None, Query(description="Filter by sender")] = None,
    recipient_kind: Annotated[
        RecipientKind | None, Query(description="Filter by recipient rule")
    ] = None,
    limit: Annotated[int, Query(ge=1, le=200, description="Maximum results")] = 50,
    skip: Annotated[int, Query(ge=0, description="Results to skip")] = 0,
    current_user: CurrentUser = Depends(require_staff),
    service: MessageService = Depends(get_message_service),
) -> MessageListResponse:
    """List messages with optional filters."""
    filters = MessageListFilters(
        message_type=message_type,
        status=status_filter,
        priority=priority,
        sender_id=sender_id,
        recipient_kind=recipient_kind,
        limit=limit,
        skip=skip,
    )
    return await service.list_messages(filters)


@router.get(
    "/stats",
    response_model=MessageStats,
    summary="Message statistics",
    description="Message counts by status, type and priority. Requires staff access.",
)
async def get_message_stats(
    current_user: CurrentUser = Depends(require_staff),
    service: MessageService = Depends(get_message_service),
) -> MessageStats:
    """Get aggregate message counts."""
    return await service.get_message_stats()


@router.get(
    "/students/{student_id}",
    response_model=list[MessageResponse],
    summary="Student inbox",
    description="Sent messages addressed to a student, newest first.",
)
async def get_student_messages(
    student_id: str,
    unread_only: Annotated[bool, Query(description="Only unread messages")] = False,
    limit: Annotated[int, Query(ge=1, le=200, description="Maximum results")] = 50,
    skip: Annotated[int, Query(ge=0, description="Results to skip")] = 0,
    current_user: CurrentUser = Depends(require_auth),
    service: MessageService = Depends(get_message_service),
) -> list[MessageResponse]:
    """Get a student's inbox.

    Staff may read any inbox. Students may only read their own.

    Args:
        student_id: Student whose inbox is read.
        unread_only: Exclude messages already read.
        limit: Maximum results.
        skip: Results to skip.
        current_user: Authenticated user.
        service: Message service.

    Returns:
        Messages addressed to the student.

    Raises:
        HTTPException: If the user may not read this inbox.
    """
    _check_inbox_access(current_user, student_id)
    return await service.get_student_messages(
        student_id,
        unread_only=unread_only,
        limit=limit,
        skip=skip,
    )


@router.get(
    "/students/{student_id}/unread",
    response_model=list[MessageResponse],
    summary="Student unread messages",
    description="Sent messages the student has not read yet.",
)
async def get_unread_messages(
    student_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: MessageService = Depends(get_message_service),
) -> list[MessageResponse]:
    """Get a student's unread messages."""
    _check_inbox_access(current_user, student_id)
    return await service.get_unread_messages(student_id)


@router.get(
    "/{message_id}",
    response_model=MessageResponse,
    summary="Get message",
    description="Get message details with delivery and read receipts.",
)
async def get_message(
    message_id: str,
    current_user: CurrentUser = Depends(require_auth),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """Get message details.

    Raises:
        HTTPException: If message not found.
    """
    try:
        return await service.get_message(message_id)
    except MessageNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )


@router.post(
    "/{message_id}/send",
    response_model=MessageResponse,
    summary="Send message",
    description="Send a draft to its recipients on every enabled channel. Requires staff access.",
)
async def send_message(
    message_id: str,
    current_user: CurrentUser = Depends(require_staff),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """Send a draft message.

    Per-recipient channel failures do not fail the request; they show up
    as missing delivery receipts.

    Args:
        message_id: Draft to send.
        current_user: Authenticated staff user.
        service: Message service.

    Returns:
        Sent message with its delivery receipts.

    Raises:
        HTTPException: If not found, already sent, or recipients cannot be
            resolved.
    """
    logger.info("Sending message %s by %s", message_id, current_user.id)

    try:
        return await service.send_message(message_id)
    except MessageNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )
    except (MessageAlreadySentError, MessageConflictError) as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except RecipientResolutionError as e:
        logger.error("Recipient resolution failed for message %s: %s", message_id, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Could not process notification",
        )


@router.delete(
    "/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete message",
    description="Delete a draft message. Sent messages cannot be deleted.",
)
async def delete_message(
    message_id: str,
    current_user: CurrentUser = Depends(require_staff),
    service: MessageService = Depends(get_message_service),
) -> None:
    """Delete a draft message.

    Raises:
        HTTPException: If not found or already sent.
    """
    logger.info("Deleting message %s by %s", message_id, current_user.id)

    try:
        await service.delete_message(message_id)
    except MessageNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )
    except MessageNotDeletableError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.post(
    "/{message_id}/read",
    response_model=MessageResponse,
    summary="Mark message read",
    description="Record that a student read a message. Repeated calls are no-ops.",
)
async def mark_message_read(
    message_id: str,
    student_id: Annotated[
        str | None, Query(description="Student to mark for (staff only)")
    ] = None,
    current_user: CurrentUser = Depends(require_auth),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """Mark a message as read.

    Students mark for themselves. Staff must name the student.

    Args:
        message_id: Message read.
        student_id: Student to mark for, staff only.
        current_user: Authenticated user.
        service: Message service.

    Returns:
        Message with its updated read receipts.

    Raises:
        HTTPException: If not found, still a draft, or no student given.
    """
    reader_id = student_id if current_user.is_staff else current_user.student_id
    if not reader_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="student_id is required",
        )
    _check_inbox_access(current_user, reader_id)

    try:
        return await service.mark_as_read(message_id, reader_id)
    except MessageNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )
    except (MessageNotSentError, InvalidChannelError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
