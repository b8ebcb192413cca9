# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification API endpoints.

This module provides endpoints that notify the active students of a
class about schedule events on every channel:
- POST /classes/{class_id}/cancellation - Class was cancelled
- POST /classes/{class_id}/time-change - Class moved to a new time

and staff tooling for the outbound channels:
- GET /channels/status - SMTP and WhatsApp configuration and readiness
- POST /test - Send the fixed test message through one channel
- POST /send - Send one message to one email address or phone number

All of them require staff access. Per-channel failures of class
notifications are reported in the result body; those requests only
fail when the class or its students cannot be loaded. A failed direct
send answers 502 with the channel error.
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from src.api.dependencies import get_direct_sender, get_notification_service, require_staff
from src.api.middleware.auth import CurrentUser
from src.infrastructure.notifications import (
    ChannelResult,
    ChannelType,
    DirectSender,
    NotificationRunResult,
    NotificationService,
)
from src.models.notification import (
    ChannelCheckRequest,
    ChannelStatusResponse,
    ClassCancellationRequest,
    ClassTimeChangeRequest,
    DirectChannel,
    DirectMessageRequest,
    DirectSendResponse,
    NotificationRunResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_ERROR = "Could not process notification"


def _to_response(
    run: NotificationRunResult,
    response: Response,
    class_id: str,
) -> NotificationRunResponse:
    """Convert a run result, hiding internal error details from clients."""
    if not run.success:
        logger.error("Notification for class %s failed: %s", class_id, run.error)
        response.status_code = status.HTTP_400_BAD_REQUEST
        return NotificationRunResponse(success=False, error=GENERIC_ERROR)

    return NotificationRunResponse.model_validate(run.to_dict())


@router.post(
    "/classes/{class_id}/cancellation",
    response_model=NotificationRunResponse,
    summary="Notify class cancellation",
    description="Notify every active student of a class that it was cancelled. Requires staff access.",
)
async def notify_class_cancellation(
    class_id: str,
    data: ClassCancellationRequest,
    response: Response,
    current_user: CurrentUser = Depends(require_staff),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationRunResponse:
    """Notify students that a class was cancelled.

    Args:
        class_id: Cancelled class.
        data: Optional cancellation reason.
        response: Outgoing response, used to set the failure status.
        current_user: Authenticated staff user, recorded as the actor.
        service: Class notification service.

    Returns:
        Per-channel counts and per-student details.
    """
    logger.info("Class %s cancellation notice by %s", class_id, current_user.id)

    run = await service.notify_class_cancellation(
        class_id,
        reason=data.reason,
        actor_id=current_user.id,
    )
    return _to_response(run, response, class_id)


@router.post(
    "/classes/{class_id}/time-change",
    response_model=NotificationRunResponse,
    summary="Notify class time change",
    description="Notify every active student of a class that its time changed. Requires staff access.",
)
async def notify_class_time_change(
    class_id: str,
    data: ClassTimeChangeRequest,
    response: Response,
    current_user: CurrentUser = Depends(require_staff),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationRunResponse:
    """Notify students that a class moved to a new time.

    Args:
        class_id: Rescheduled class.
        data: Old and new time labels.
        response: Outgoing response, used to set the failure status.
        current_user: Authenticated staff user, recorded as the actor.
        service: Class notification service.

    Returns:
        Per-channel counts and per-student details.
    """
    logger.info(
        "Class %s time change notice (%s -> %s) by %s",
        class_id,
        data.old_time,
        data.new_time,
        current_user.id,
    )

    run = await service.notify_class_time_change(
        class_id,
        old_time=data.old_time,
        new_time=data.new_time,
        actor_id=current_user.id,
    )
    return _to_response(run, response, class_id)


def _to_send_response(
    result: ChannelResult,
    channel: DirectChannel,
    response: Response,
) -> DirectSendResponse:
    if not result.succeeded:
        response.status_code = status.HTTP_502_BAD_GATEWAY
    return DirectSendResponse(
        success=result.succeeded,
        channel=channel,
        message_id=result.message_id,
        error=result.error_message,
    )


@router.get(
    "/channels/status",
    response_model=ChannelStatusResponse,
    summary="Get channel status",
    description="Report SMTP and WhatsApp configuration and gateway readiness. Requires staff access.",
)
async def get_channel_status(
    current_user: CurrentUser = Depends(require_staff),
    sender: DirectSender = Depends(get_direct_sender),
) -> ChannelStatusResponse:
    """Get outbound channel configuration and readiness."""
    channel_status = await sender.channel_status()
    return ChannelStatusResponse.model_validate(channel_status.to_dict())


@router.post(
    "/test",
    response_model=DirectSendResponse,
    summary="Send test message",
    description="Send the fixed test message through email or WhatsApp. Requires staff access.",
)
async def send_test_message(
    data: ChannelCheckRequest,
    response: Response,
    current_user: CurrentUser = Depends(require_staff),
    sender: DirectSender = Depends(get_direct_sender),
) -> DirectSendResponse:
    """Send the test message to check a channel end to end.

    Args:
        data: Channel and recipient address.
        response: Outgoing response, used to set the failure status.
        current_user: Authenticated staff user.
        sender: Direct sender.

    Returns:
        Whether the channel accepted the message.
    """
    logger.info("Test %s message to %s by %s", data.channel.value, data.recipient, current_user.id)

    result = await sender.send_test(ChannelType(data.channel.value), data.recipient)
    return _to_send_response(result, data.channel, response)


@router.post(
    "/send",
    response_model=DirectSendResponse,
    summary="Send direct message",
    description="Send one email or WhatsApp message to one address. Requires staff access.",
)
async def send_direct_message(
    data: DirectMessageRequest,
    response: Response,
    current_user: CurrentUser = Depends(require_staff),
    sender: DirectSender = Depends(get_direct_sender),
) -> DirectSendResponse:
    """Send a message outside the message store. No receipts are written."""
    logger.info("Direct %s message to %s by %s", data.channel.value, data.recipient, current_user.id)

    result = await sender.send(
        ChannelType(data.channel.value),
        data.recipient,
        data.content,
        subject=data.subject,
    )
    return _to_send_response(result, data.channel, response)
