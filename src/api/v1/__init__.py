# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.
Each module provides a FastAPI router for a specific domain.

Modules:
    messages: Internal message endpoints (drafts, send, inbox, receipts).
    notifications: Class event notification endpoints (cancellation, time change).
"""

from fastapi import APIRouter

from src.api.v1 import messages, notifications

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(messages.router, prefix="/messages", tags=["Messages"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

__all__ = ["router"]
