# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the SMTP email channel."""

import asyncio
from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest
from pydantic import SecretStr

from src.core.config import SMTPSettings
from src.infrastructure.notifications.channels import (
    DeliveryRequest,
    DeliveryStatus,
    EmailChannel,
)


@pytest.fixture
def smtp_settings() -> SMTPSettings:
    """Create complete SMTP settings."""
    return SMTPSettings(
        host="smtp.vac.cl",
        port=587,
        username="notificaciones",
        password=SecretStr("secret"),
        from_email="no-reply@vac.cl",
        from_name="Escuela VAC",
    )


def _request(destination: str | None = "ana@vac.cl") -> DeliveryRequest:
    return DeliveryRequest(
        message_id="m1",
        recipient_id="s1",
        subject="Clase Cancelada: Guitarra 101",
        body="<p>Hola</p>",
        destination=destination,
        text_body="Hola",
    )


class TestEmailChannel:
    """Tests for EmailChannel."""

    @pytest.mark.asyncio
    async def test_send_success(self, smtp_settings: SMTPSettings) -> None:
        """Test that a configured channel sends a multipart message."""
        channel = EmailChannel(smtp_settings)

        with patch(
            "src.infrastructure.notifications.channels.email.aiosmtplib.send",
            new_callable=AsyncMock,
        ) as mock_send:
            result = await channel.deliver(_request())

        assert result.status == DeliveryStatus.SENT
        assert result.message_id is not None

        message = mock_send.await_args.args[0]
        kwargs = mock_send.await_args.kwargs
        assert message["To"] == "ana@vac.cl"
        assert message["From"] == "Escuela VAC <no-reply@vac.cl>"
        assert message["Subject"] == "Clase Cancelada: Guitarra 101"
        assert [part.get_content_type() for part in message.get_payload()] == [
            "text/plain",
            "text/html",
        ]
        assert kwargs["hostname"] == "smtp.vac.cl"
        assert kwargs["password"] == "secret"
        assert kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_smtp_error_is_failure(self, smtp_settings: SMTPSettings) -> None:
        """Test that SMTP exceptions become failed results."""
        channel = EmailChannel(smtp_settings)

        with patch(
            "src.infrastructure.notifications.channels.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("mailbox unavailable"),
        ):
            result = await channel.deliver(_request())

        assert result.status == DeliveryStatus.FAILED
        assert result.error_message == "SMTP error: mailbox unavailable"

    @pytest.mark.asyncio
    async def test_connection_error_is_failure(self, smtp_settings: SMTPSettings) -> None:
        """Test that socket errors become failed results."""
        channel = EmailChannel(smtp_settings)

        with patch(
            "src.infrastructure.notifications.channels.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=ConnectionRefusedError("refused"),
        ):
            result = await channel.deliver(_request())

        assert result.status == DeliveryStatus.FAILED
        assert result.error_message.startswith("SMTP connection error")

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self, smtp_settings: SMTPSettings) -> None:
        """Test that a hung SMTP server is cut off by the channel deadline."""
        channel = EmailChannel(smtp_settings, timeout_seconds=0.05)

        async def hang(*args, **kwargs):
            await asyncio.sleep(60)

        with patch(
            "src.infrastructure.notifications.channels.email.aiosmtplib.send",
            side_effect=hang,
        ):
            result = await channel.deliver(_request())

        assert result.status == DeliveryStatus.FAILED
        assert result.error_message == "timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_unconfigured(self) -> None:
        """Test that incomplete SMTP settings fail without sending."""
        channel = EmailChannel(SMTPSettings(host=None))

        with patch(
            "src.infrastructure.notifications.channels.email.aiosmtplib.send",
            new_callable=AsyncMock,
        ) as mock_send:
            result = await channel.deliver(_request())

        assert result.status == DeliveryStatus.FAILED
        assert result.error_message == "SMTP configuration incomplete"
        mock_send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_destination(self, smtp_settings: SMTPSettings) -> None:
        """Test that a recipient without address is a failure."""
        result = await EmailChannel(smtp_settings).deliver(_request(destination=None))

        assert result.status == DeliveryStatus.FAILED
        assert result.error_message == "No recipient email address"
