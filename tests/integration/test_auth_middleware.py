# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the authentication middleware.

Tests the middleware in isolation from the database.
"""

from collections.abc import Callable

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from src.api.middleware.auth import AuthMiddleware, bearer_token, get_current_user
from src.core.config import JWTSettings


def _app(jwt_settings: JWTSettings) -> FastAPI:
    app = FastAPI()
    app.add_middleware(AuthMiddleware, settings=jwt_settings)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/whoami")
    async def whoami(request: Request) -> dict:
        user = get_current_user(request)
        if user is None:
            return {"user": None}
        return {"user": user.id, "role": user.role, "student_id": user.student_id}

    return app


class TestBearerToken:
    """Tests for Authorization header parsing."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("Token abc", None),
            ("Bearer", None),
            ("Bearer a b", None),
            (None, None),
        ],
    )
    def test_parsing(self, header: str | None, expected: str | None) -> None:
        assert bearer_token(header) == expected


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    def test_public_path_bypasses_auth(self, jwt_settings: JWTSettings) -> None:
        """Test that public paths don't require authentication."""
        client = TestClient(_app(jwt_settings))

        response = client.get("/health", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 200

    def test_valid_token_sets_user(
        self,
        jwt_settings: JWTSettings,
        make_token: Callable[..., str],
    ) -> None:
        """Test that a valid token populates request.state.user."""
        client = TestClient(_app(jwt_settings))
        token = make_token(sub="account-7", role="student", student_id="s7")

        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json() == {"user": "account-7", "role": "student", "student_id": "s7"}

    def test_missing_header_leaves_user_empty(self, jwt_settings: JWTSettings) -> None:
        client = TestClient(_app(jwt_settings))

        response = client.get("/whoami")

        assert response.json() == {"user": None}

    def test_malformed_header_is_ignored(
        self,
        jwt_settings: JWTSettings,
        make_token: Callable[..., str],
    ) -> None:
        """Test that only the Bearer scheme is accepted."""
        client = TestClient(_app(jwt_settings))

        response = client.get("/whoami", headers={"Authorization": f"Token {make_token()}"})

        assert response.json() == {"user": None}

    def test_refresh_token_is_rejected(
        self,
        jwt_settings: JWTSettings,
        make_token: Callable[..., str],
    ) -> None:
        """Test that refresh tokens do not authenticate requests."""
        client = TestClient(_app(jwt_settings))
        token = make_token(type="refresh")

        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json() == {"user": None}
