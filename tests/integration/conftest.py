# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fixtures for API integration tests.

The API is mounted on a bare FastAPI app with the real authentication
middleware. Services are replaced with AsyncMock instances through
dependency overrides so that no database is needed.
"""

import time
from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from pydantic import SecretStr

from src.api.dependencies import (
    get_direct_sender,
    get_message_service,
    get_notification_service,
)
from src.api.middleware.auth import AuthMiddleware
from src.api.v1 import router as v1_router
from src.core.config import JWTSettings
from src.models.message import (
    AllStudentsRule,
    DeliveryChannels,
    MessageMetadata,
    MessageResponse,
)

TEST_SECRET = "integration-test-secret"


@pytest.fixture
def jwt_settings() -> JWTSettings:
    """JWT settings shared by the middleware and token factory."""
    return JWTSettings(secret_key=SecretStr(TEST_SECRET), algorithm="HS256")


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for signed access tokens."""

    def _make(sub: str = "user-1", role: str = "admin", **claims) -> str:
        now = int(time.time())
        payload = {"sub": sub, "role": role, "type": "access", "iat": now, "exp": now + 600}
        payload.update(claims)
        return jwt.encode(payload, TEST_SECRET, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[..., dict[str, str]]:
    """Factory for Authorization headers."""

    def _headers(role: str = "admin", sub: str = "user-1", **claims) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub=sub, role=role, **claims)}"}

    return _headers


@pytest.fixture
def message_service() -> MagicMock:
    """Mock message service."""
    return AsyncMock()


@pytest.fixture
def notification_service() -> MagicMock:
    """Mock class notification service."""
    return AsyncMock()


@pytest.fixture
def direct_sender() -> MagicMock:
    """Mock direct sender."""
    return AsyncMock()


@pytest.fixture
def app(
    jwt_settings: JWTSettings,
    message_service: MagicMock,
    notification_service: MagicMock,
    direct_sender: MagicMock,
) -> FastAPI:
    """FastAPI app with v1 routes and mocked services."""
    application = FastAPI(redirect_slashes=False)
    application.add_middleware(AuthMiddleware, settings=jwt_settings)
    application.include_router(v1_router)
    application.dependency_overrides[get_message_service] = lambda: message_service
    application.dependency_overrides[get_notification_service] = lambda: notification_service
    application.dependency_overrides[get_direct_sender] = lambda: direct_sender
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client for the app."""
    return TestClient(app)


@pytest.fixture
def message_response() -> Callable[..., MessageResponse]:
    """Factory for message responses returned by the mock service."""

    def _make(message_id: str = "msg-1", status: str = "draft") -> MessageResponse:
        now = datetime(2025, 3, 14, 10, 0, tzinfo=timezone.utc)
        return MessageResponse(
            id=message_id,
            sender_id="user-1",
            recipient=AllStudentsRule(),
            subject="Ensayo general",
            body="Hola {{nombre}}",
            message_type="notification",
            priority="medium",
            status=status,
            delivery_channels=DeliveryChannels(),
            sent_at=now if status == "sent" else None,
            metadata=MessageMetadata(),
            created_at=now,
            updated_at=now,
        )

    return _make
