# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""WhatsApp notification channel.

Delivery goes through an ordered list of transports. The first transport
that succeeds wins. When all of them fail, the error of the last one is
reported. Each attempt has its own deadline, so a hung primary transport
still leaves time for the fallback.

Transports:
- WhatsAppWebTransport: HTTP gateway in front of an authenticated
  WhatsApp Web session (primary).
- WhatsAppCloudTransport: WhatsApp Business Cloud API (fallback).
"""

import asyncio
import re
from typing import Any, Protocol

import httpx

from src.core.config import NotificationSettings, WhatsAppSettings
from src.infrastructure.notifications.channels.base import (
    DEFAULT_TIMEOUT_SECONDS,
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryRequest,
)

_NON_DIALABLE = re.compile(r"[^\d+]")


class WhatsAppTransportError(Exception):
    """Raised by a transport when a message could not be sent."""

    pass


def normalize_phone(phone: str, default_country_code: str = "+34") -> str:
    """Normalize a phone number to international digits without '+'.

    Spaces, dashes, parentheses and other separators are removed. Numbers
    without a leading '+' get the default country code.

    Example:
        >>> normalize_phone("(612) 345-678")
        '34612345678'
        >>> normalize_phone("+56 9 1234 5678")
        '56912345678'
    """
    cleaned = _NON_DIALABLE.sub("", phone)
    if not cleaned.startswith("+"):
        cleaned = default_country_code + cleaned
    return cleaned.replace("+", "")


class WhatsAppTransport(Protocol):
    """A way of getting a text message to a WhatsApp number."""

    name: str

    async def send_text(self, phone: str, text: str) -> str | None:
        """Send a text message.

        Args:
            phone: Normalized phone number (digits only).
            text: Message text.

        Returns:
            External message ID, if the transport reports one.

        Raises:
            WhatsAppTransportError: If the message was not sent.
        """
        ...


async def _call(
    client: httpx.AsyncClient | None,
    method: str,
    url: str,
    source: str,
    **kwargs: Any,
) -> httpx.Response:
    try:
        if client is not None:
            return await client.request(method, url, **kwargs)
        async with httpx.AsyncClient() as owned:
            return await owned.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise WhatsAppTransportError(f"{source} unreachable: {e}") from e


def _json_object(response: httpx.Response, source: str) -> dict[str, Any]:
    """Decode a JSON object body or raise WhatsAppTransportError.

    Proxies and captive portals answer 200 with HTML, so a successful
    status alone does not mean the provider accepted the message.
    """
    try:
        data = response.json()
    except ValueError as e:
        raise WhatsAppTransportError(
            f"{source} returned a non-JSON response ({response.status_code})"
        ) from e
    if not isinstance(data, dict):
        raise WhatsAppTransportError(f"{source} returned an unexpected response")
    return data


class WhatsAppWebTransport:
    """Sends through the WhatsApp Web session gateway.

    The gateway answers 409 or 503 while its session is not linked or
    not ready yet.
    """

    name = "whatsapp_web"
    source = "WhatsApp Web gateway"

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def send_text(self, phone: str, text: str) -> str | None:
        response = await _call(
            self._client,
            "POST",
            f"{self.base_url}/messages",
            self.source,
            json={"to": phone, "message": text},
            headers=self._headers,
        )

        if response.status_code in (409, 503):
            raise WhatsAppTransportError("WhatsApp Web no está inicializado o listo")
        if response.status_code >= 400:
            raise WhatsAppTransportError(
                f"WhatsApp Web gateway error {response.status_code}: {response.text}"
            )

        data = _json_object(response, self.source)
        if not data.get("success", False):
            raise WhatsAppTransportError(data.get("error") or "Error enviando WhatsApp")
        return data.get("messageId")

    async def is_ready(self) -> bool:
        """Ask the gateway whether its WhatsApp Web session can send.

        Raises:
            WhatsAppTransportError: If the gateway cannot be queried.
        """
        response = await _call(
            self._client,
            "GET",
            f"{self.base_url}/status",
            self.source,
            headers=self._headers,
        )
        if response.status_code >= 400:
            raise WhatsAppTransportError(
                f"WhatsApp Web gateway error {response.status_code}"
            )
        return bool(_json_object(response, self.source).get("ready", False))


class WhatsAppCloudTransport:
    """Sends through the WhatsApp Business Cloud API."""

    name = "whatsapp_cloud"
    source = "WhatsApp Cloud API"

    def __init__(
        self,
        api_url: str,
        phone_number_id: str,
        access_token: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.phone_number_id = phone_number_id
        self.access_token = access_token
        self._client = client

    async def send_text(self, phone: str, text: str) -> str | None:
        response = await _call(
            self._client,
            "POST",
            f"{self.api_url}/{self.phone_number_id}/messages",
            self.source,
            json={
                "messaging_product": "whatsapp",
                "to": phone,
                "type": "text",
                "text": {"body": text},
            },
            headers={"Authorization": f"Bearer {self.access_token}"},
        )

        if response.status_code >= 400:
            raise WhatsAppTransportError(
                _cloud_error(response) or f"WhatsApp Cloud API error {response.status_code}"
            )

        messages = _json_object(response, self.source).get("messages")
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            return messages[0].get("id")
        return None


def _cloud_error(response: httpx.Response) -> str | None:
    try:
        error = _json_object(response, WhatsAppCloudTransport.source).get("error")
    except WhatsAppTransportError:
        return None
    if isinstance(error, dict):
        return error.get("message")
    return error if isinstance(error, str) else None


class WhatsAppChannel(BaseChannel):
    """WhatsApp channel with ordered transport fallback.

    Attributes:
        transports: Transports in the order they are tried.
        default_country_code: Prefix for numbers without one.
    """

    def __init__(
        self,
        transports: list[WhatsAppTransport],
        default_country_code: str = "+34",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(timeout_seconds)
        self.transports = transports
        self.default_country_code = default_country_code

    @classmethod
    def from_settings(
        cls,
        settings: WhatsAppSettings,
        notifications: NotificationSettings,
    ) -> "WhatsAppChannel":
        """Build the channel with the transports that are configured."""
        transports: list[WhatsAppTransport] = []
        if settings.web_gateway_url:
            token = settings.web_gateway_token
            transports.append(
                WhatsAppWebTransport(
                    settings.web_gateway_url,
                    token=token.get_secret_value() if token else None,
                )
            )
        if settings.cloud_configured:
            transports.append(
                WhatsAppCloudTransport(
                    settings.cloud_api_url,
                    settings.cloud_phone_number_id,
                    settings.cloud_access_token.get_secret_value(),
                )
            )
        return cls(
            transports,
            default_country_code=notifications.default_country_code,
            timeout_seconds=notifications.channel_timeout_seconds,
        )

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        return ChannelType.WHATSAPP

    async def deliver(self, request: DeliveryRequest) -> ChannelResult:
        """Send without an outer deadline. Each transport attempt has its own."""
        return await self.send(request)

    async def send(self, request: DeliveryRequest) -> ChannelResult:
        """Send a rendered message, trying each transport in turn.

        Args:
            request: Delivery request with a WhatsApp-formatted body.

        Returns:
            ChannelResult from the first successful transport, or a
            failure carrying the last transport's error.
        """
        if not request.destination:
            return self.create_failure_result("No recipient phone number")
        if not self.transports:
            return self.create_failure_result("No WhatsApp transport configured")

        phone = normalize_phone(request.destination, self.default_country_code)
        last_error = ""

        for transport in self.transports:
            try:
                external_id = await asyncio.wait_for(
                    transport.send_text(phone, request.body),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                last_error = f"{transport.name} timed out after {self.timeout_seconds:g}s"
            except WhatsAppTransportError as e:
                last_error = str(e)
            except Exception as e:
                # A misbehaving transport must not keep the next one from running.
                self.logger.exception("Unexpected error in WhatsApp transport %s", transport.name)
                last_error = f"{transport.name} failed: {e.__class__.__name__}: {e}"
            else:
                self.logger.info("WhatsApp sent to %s via %s", phone, transport.name)
                return self.create_success_result(
                    message_id=external_id,
                    metadata={"recipient": phone, "transport": transport.name},
                )

            self.logger.warning(
                "WhatsApp transport %s failed for %s: %s",
                transport.name,
                phone,
                last_error,
            )

        return self.create_failure_result(last_error, metadata={"recipient": phone})
