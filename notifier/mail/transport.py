"""Email transports: Resend HTTP API and a log-only transport for development."""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Protocol

import aiohttp

from notifier.config import EmailConfig
from notifier.errors import EmailTransportError

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class EmailTransport(Protocol):
    async def send(
        self,
        sender: str,
        recipient: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
    ) -> str:
        """Send one email and return the provider message id."""
        ...


class ResendTransport:
    """Send through the Resend REST API."""

    def __init__(self, api_key: str, timeout_seconds: int = 30, url: str = RESEND_URL) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def send(
        self,
        sender: str,
        recipient: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
    ) -> str:
        payload = {
            "from": sender,
            "to": [r.strip() for r in recipient.split(",") if r.strip()],
            "subject": subject,
            "html": html,
            "reply_to": sender,
        }
        if text:
            payload["text"] = text
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.url, json=payload, headers=headers) as resp:
                    data = await resp.json(content_type=None)
                    if resp.status >= 400:
                        message = data.get("message") if isinstance(data, dict) else None
                        raise EmailTransportError(
                            f"Resend returned HTTP {resp.status}: {message or 'unknown error'}"
                        )
        except aiohttp.ClientError as e:
            raise EmailTransportError(f"Resend request failed: {e}") from e

        email_id = data.get("id") if isinstance(data, dict) else None
        if not email_id:
            raise EmailTransportError("Resend response did not include an email id")
        return str(email_id)


class LogTransport:
    """Log the email instead of sending it."""

    async def send(
        self,
        sender: str,
        recipient: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
    ) -> str:
        email_id = f"log-{uuid.uuid4().hex[:12]}"
        logger.info(
            "Email %s from=%s to=%s subject=%r (%d chars html)",
            email_id, sender, recipient, subject, len(html),
        )
        return email_id


def build_transport(config: EmailConfig) -> EmailTransport:
    if config.provider == "resend":
        if not config.api_key:
            raise EmailTransportError("email.api_key is required for the resend provider")
        return ResendTransport(config.api_key, timeout_seconds=config.timeout_seconds)
    if config.provider == "log":
        return LogTransport()
    raise EmailTransportError(f"Unknown email provider {config.provider!r}")
