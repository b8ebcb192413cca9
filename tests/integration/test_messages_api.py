# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for message API endpoints.

Tests the API layer with mocked service dependencies.
"""

from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.domains.messaging import (
    MessageAlreadySentError,
    MessageNotDeletableError,
    MessageNotFoundError,
    MessageNotSentError,
    RecipientResolutionError,
)
from src.models.message import MessageListFilters, MessageStats, MessageStatus

BASE = "/api/v1/messages"


class TestMessagesRouterRegistration:
    """Tests for messages router registration."""

    def test_routes_are_registered(self, app: FastAPI) -> None:
        """Test that every message route is mounted."""
        routes = {(route.path, method) for route in app.routes for method in route.methods}

        assert (BASE, "POST") in routes
        assert (BASE, "GET") in routes
        assert (f"{BASE}/stats", "GET") in routes
        assert (f"{BASE}/students/{{student_id}}", "GET") in routes
        assert (f"{BASE}/students/{{student_id}}/unread", "GET") in routes
        assert (f"{BASE}/{{message_id}}", "GET") in routes
        assert (f"{BASE}/{{message_id}}", "DELETE") in routes
        assert (f"{BASE}/{{message_id}}/send", "POST") in routes
        assert (f"{BASE}/{{message_id}}/read", "POST") in routes


class TestAuthentication:
    """Tests for access control on message endpoints."""

    def test_missing_token_is_unauthorized(self, client: TestClient) -> None:
        response = client.get(BASE)

        assert response.status_code == 401

    def test_invalid_token_is_unauthorized(self, client: TestClient) -> None:
        response = client.get(BASE, headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401

    def test_student_cannot_create(
        self,
        client: TestClient,
        auth_headers,
        sample_message_data: dict[str, Any],
        message_service: MagicMock,
    ) -> None:
        """Test that authoring requires staff access."""
        response = client.post(
            BASE,
            json=sample_message_data,
            headers=auth_headers(role="student", sub="s1"),
        )

        assert response.status_code == 403
        message_service.create_message.assert_not_awaited()

    def test_student_reads_own_inbox_only(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        """Test that students are confined to their own inbox."""
        message_service.get_student_messages.return_value = []
        headers = auth_headers(role="student", sub="s1")

        own = client.get(f"{BASE}/students/s1", headers=headers)
        other = client.get(f"{BASE}/students/s2", headers=headers)

        assert own.status_code == 200
        assert other.status_code == 403
        assert other.json()["detail"] == "Access denied to this inbox"


class TestCreateAndList:
    """Tests for authoring and listing."""

    def test_create_message(
        self,
        client: TestClient,
        auth_headers,
        sample_message_data: dict[str, Any],
        message_service: MagicMock,
        message_response,
    ) -> None:
        """Test that the staff user is recorded as sender."""
        message_service.create_message.return_value = message_response()

        response = client.post(
            BASE,
            json=sample_message_data,
            headers=auth_headers(role="teacher", sub="t1"),
        )

        assert response.status_code == 201
        assert response.json()["status"] == "draft"
        assert message_service.create_message.await_args.kwargs["sender_id"] == "t1"

    def test_create_rejects_invalid_body(
        self,
        client: TestClient,
        auth_headers,
        sample_message_data: dict[str, Any],
    ) -> None:
        """Test that an over-long body is a validation error."""
        sample_message_data["body"] = "x" * 2001

        response = client.post(BASE, json=sample_message_data, headers=auth_headers())

        assert response.status_code == 422

    def test_list_passes_filters(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
        message_response,
    ) -> None:
        message_service.list_messages.return_value = {
            "items": [message_response(status="sent").model_dump(mode="json")],
            "total": 1,
            "limit": 10,
            "skip": 0,
        }

        response = client.get(
            BASE,
            params={"status": "sent", "limit": 10},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1
        filters: MessageListFilters = message_service.list_messages.await_args.args[0]
        assert filters.status == MessageStatus.SENT
        assert filters.limit == 10

    def test_stats(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        message_service.get_message_stats.return_value = MessageStats(total=3, sent=2, drafts=1)

        response = client.get(f"{BASE}/stats", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["drafts"] == 1


class TestSendAndDelete:
    """Tests for error mapping on send and delete."""

    def test_send_message(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
        message_response,
    ) -> None:
        message_service.send_message.return_value = message_response(status="sent")

        response = client.post(f"{BASE}/msg-1/send", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["status"] == "sent"

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (MessageNotFoundError("missing"), 404),
            (MessageAlreadySentError("already sent"), 409),
            (RecipientResolutionError("db down"), 400),
        ],
    )
    def test_send_errors(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
        error: Exception,
        status_code: int,
    ) -> None:
        """Test that service errors map to HTTP statuses."""
        message_service.send_message.side_effect = error

        response = client.post(f"{BASE}/msg-1/send", headers=auth_headers())

        assert response.status_code == status_code

    def test_send_resolution_error_is_generic(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        """Test that internal details are not returned to clients."""
        message_service.send_message.side_effect = RecipientResolutionError("db down")

        response = client.post(f"{BASE}/msg-1/send", headers=auth_headers())

        assert response.json()["detail"] == "Could not process notification"

    def test_delete_draft(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        message_service.delete_message.return_value = None

        response = client.delete(f"{BASE}/msg-1", headers=auth_headers())

        assert response.status_code == 204

    def test_delete_sent_conflicts(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        message_service.delete_message.side_effect = MessageNotDeletableError(
            "Only draft messages can be deleted"
        )

        response = client.delete(f"{BASE}/msg-1", headers=auth_headers())

        assert response.status_code == 409

    def test_get_unknown_message(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        message_service.get_message.side_effect = MessageNotFoundError("missing")

        response = client.get(f"{BASE}/missing", headers=auth_headers())

        assert response.status_code == 404


class TestMarkRead:
    """Tests for POST /{message_id}/read."""

    def test_student_marks_own_read(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
        message_response,
    ) -> None:
        """Test that a student's token decides whose receipt is written."""
        message_service.mark_as_read.return_value = message_response(status="sent")

        response = client.post(
            f"{BASE}/msg-1/read",
            headers=auth_headers(role="student", sub="account-1", student_id="s1"),
        )

        assert response.status_code == 200
        message_service.mark_as_read.assert_awaited_once_with("msg-1", "s1")

    def test_staff_must_name_student(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        response = client.post(f"{BASE}/msg-1/read", headers=auth_headers())

        assert response.status_code == 400
        assert response.json()["detail"] == "student_id is required"
        message_service.mark_as_read.assert_not_awaited()

    def test_draft_cannot_be_read(
        self,
        client: TestClient,
        auth_headers,
        message_service: MagicMock,
    ) -> None:
        message_service.mark_as_read.side_effect = MessageNotSentError("draft")

        response = client.post(
            f"{BASE}/msg-1/read",
            params={"student_id": "s1"},
            headers=auth_headers(),
        )

        assert response.status_code == 400
