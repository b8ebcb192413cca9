# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email notification channel using async SMTP.

This channel sends email notifications using aiosmtplib for
async SMTP communication. Every email carries both a plain text
and an HTML part.

Configuration (via environment variables, see SMTPSettings):
- SMTP_HOST: SMTP server hostname
- SMTP_PORT: SMTP server port (default: 587)
- SMTP_USERNAME: SMTP authentication username
- SMTP_PASSWORD: SMTP authentication password
- SMTP_USE_TLS: Use STARTTLS (default: true)
- SMTP_FROM_EMAIL: Sender email address
- SMTP_FROM_NAME: Sender display name
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import aiosmtplib

from src.core.config import SMTPSettings
from src.infrastructure.notifications.channels.base import (
    DEFAULT_TIMEOUT_SECONDS,
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryRequest,
)


class EmailChannel(BaseChannel):
    """Email notification channel using async SMTP.

    Unconfigured SMTP is reported as a failed result so that the
    fan-out report shows why nothing was mailed.
    """

    def __init__(
        self,
        settings: SMTPSettings,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the email channel.

        Args:
            settings: SMTP settings.
            timeout_seconds: Deadline for a single send.
        """
        super().__init__(timeout_seconds)
        self.settings = settings
        if not settings.is_configured:
            self.logger.warning(
                "Email notifications disabled: SMTP_HOST, SMTP_USERNAME, "
                "SMTP_PASSWORD, or SMTP_FROM_EMAIL not set"
            )

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        return ChannelType.EMAIL

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        """Send a rendered message by email.

        Args:
            request: Delivery request with an HTML body.

        Returns:
            ChannelResult with delivery status.
        """
        if not request.destination:
            return self.create_failure_result("No recipient email address")

        return await self.send_email(
            to=request.destination,
            subject=request.subject,
            html=request.body,
            text=request.text_body,
        )

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> ChannelResult:
        """Send one email via SMTP.

        Args:
            to: Recipient address.
            subject: Subject line.
            html: HTML body.
            text: Plain text alternative. Defaults to the subject.

        Returns:
            ChannelResult with delivery status.
        """
        if not self.settings.is_configured:
            return self.create_failure_result("SMTP configuration incomplete")

        message = self._build_email_message(to, subject, html, text or subject)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.host,
                port=self.settings.port,
                username=self.settings.username,
                password=self.settings.password.get_secret_value(),
                start_tls=self.settings.use_tls,
            )
        except aiosmtplib.SMTPException as e:
            self.logger.error("Failed to send email to %s: %s", to, str(e))
            return self.create_failure_result(
                f"SMTP error: {str(e)}",
                metadata={"recipient": to},
            )
        except OSError as e:
            self.logger.error("SMTP connection failed for %s: %s", to, str(e))
            return self.create_failure_result(
                f"SMTP connection error: {str(e)}",
                metadata={"recipient": to},
            )

        self.logger.info("Email sent to %s: %s", to, subject)
        return self.create_success_result(
            message_id=message["Message-ID"],
            metadata={"recipient": to},
        )

    def _build_email_message(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
    ) -> MIMEMultipart:
        """Build MIME email message.

        Returns:
            MIMEMultipart message ready to send.
        """
        message = MIMEMultipart("alternative")

        message["From"] = f"{self.settings.from_name} <{self.settings.from_email}>"
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()

        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))

        return message
