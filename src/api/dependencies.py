# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get authenticated users
- Get service instances

Example:
    @router.get("/messages")
    async def list_messages(
        service: MessageService = Depends(get_message_service),
        current_user: CurrentUser = Depends(require_staff),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import Settings, get_settings
from src.domains.messaging.service import MessageService
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)
from src.infrastructure.notifications import DirectSender, NotificationService

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    The session commits when the endpoint returns and rolls back when it
    raises.

    Yields:
        AsyncSession for the request.
    """
    async with get_session() as session:
        yield session


def get_app_settings() -> Settings:
    """Get application settings."""
    return get_settings()


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Args:
        request: HTTP request.

    Returns:
        CurrentUser.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_staff(request: Request) -> CurrentUser:
    """Require staff user (administrator or teacher).

    Args:
        request: HTTP request.

    Returns:
        CurrentUser.

    Raises:
        HTTPException: If not authenticated or not staff.
    """
    user = require_auth(request)
    if not user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return user


# =========================================================================
# Service Dependencies
# =========================================================================


def get_message_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> MessageService:
    """Get message service bound to the request session."""
    return MessageService(db, settings=settings)


def get_notification_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> NotificationService:
    """Get class notification service bound to the request session."""
    return NotificationService.from_session(db, settings)


def get_direct_sender(
    settings: Settings = Depends(get_app_settings),
) -> DirectSender:
    """Get the email and WhatsApp sender for one-off sends."""
    return DirectSender.from_settings(settings)
