# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Channel-specific rendering of message bodies.

Message bodies are stored in a canonical rich-text form: plain text with
newlines and ``**bold**`` emphasis. The templater substitutes recipient
placeholders and adapts the result to what each channel can display:

- internal: the canonical body, unchanged after substitution
- email: escaped HTML inside the school envelope
- whatsapp: chat markup (``*bold*``) with header and signature lines

Supported placeholders are ``{{nombre}}``, ``{{email}}`` and
``{{instrumento}}``. Unknown placeholders are left as they are.
"""

import html
import re

from src.core.config import Settings
from src.domains.directory.types import Recipient
from src.infrastructure.notifications.channels.base import ChannelType

_PLACEHOLDER = re.compile(r"\{\{(nombre|email|instrumento)\}\}")
_BOLD = re.compile(r"\*\*(.+?)\*\*")

DEFAULT_SCHOOL_NAME = "Escuela de Música VAC"
DEFAULT_FALLBACK_NAME = "Estudiante"
EMAIL_FOOTER = "Este mensaje fue enviado desde el sistema interno de la escuela."
WHATSAPP_SIGNATURE = "_Enviado desde el sistema interno de la escuela._"

EMAIL_ENVELOPE = """\
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; margin: 0; padding: 0;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #1976d2;">{school}</h2>
        <div style="background-color: #f5f5f5; padding: 20px; border-radius: 8px;">
            {content}
        </div>
        <p style="color: #666; font-size: 12px; margin-top: 20px;">
            {footer}
        </p>
    </div>
</body>
</html>"""


class ContentTemplater:
    """Renders canonical message bodies per channel.

    Pure: rendering never touches storage or the network.

    Attributes:
        school_name: Name shown in email and WhatsApp headers.
        fallback_name: Substituted for {{nombre}} when the name is missing.
    """

    def __init__(
        self,
        school_name: str = DEFAULT_SCHOOL_NAME,
        fallback_name: str = DEFAULT_FALLBACK_NAME,
    ) -> None:
        self.school_name = school_name
        self.fallback_name = fallback_name

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContentTemplater":
        """Build a templater from notification settings."""
        return cls(
            school_name=settings.notifications.school_name,
            fallback_name=settings.notifications.recipient_fallback_name,
        )

    def substitute(self, body: str, recipient: Recipient) -> str:
        """Replace recipient placeholders in a body.

        Args:
            body: Canonical body.
            recipient: Recipient whose fields fill the placeholders.

        Returns:
            Body with placeholders replaced.
        """
        values = {
            "nombre": recipient.display_name or self.fallback_name,
            "email": recipient.email or "",
            "instrumento": recipient.instrument or "",
        }
        return _PLACEHOLDER.sub(lambda match: values[match.group(1)], body)

    def render(
        self,
        body: str,
        recipient: Recipient,
        channel: ChannelType | str,
    ) -> str:
        """Render a body for one recipient on one channel.

        Args:
            body: Canonical body.
            recipient: Target recipient.
            channel: internal, email or whatsapp.

        Returns:
            Channel-ready content.

        Raises:
            ValueError: If the channel is unknown.
        """
        channel = ChannelType(channel)
        content = self.substitute(body, recipient)

        if channel is ChannelType.INTERNAL:
            return content
        if channel is ChannelType.EMAIL:
            return self.to_email_html(content)
        return self.to_whatsapp(content)

    def to_email_html(self, content: str) -> str:
        """Wrap already-substituted content in the HTML email envelope."""
        escaped = html.escape(content, quote=True)
        formatted = _BOLD.sub(r"<strong>\1</strong>", escaped).replace("\n", "<br>")
        return EMAIL_ENVELOPE.format(
            school=html.escape(self.school_name),
            content=formatted,
            footer=EMAIL_FOOTER,
        )

    def to_whatsapp(self, content: str) -> str:
        """Convert already-substituted content to WhatsApp chat markup."""
        formatted = _BOLD.sub(r"*\1*", content)
        return f"🎵 *{self.school_name}*\n\n{formatted}\n\n{WHATSAPP_SIGNATURE}"

    @staticmethod
    def plain_text(content: str) -> str:
        """Strip emphasis markup, for the text/plain email alternative."""
        return _BOLD.sub(r"\1", content)
