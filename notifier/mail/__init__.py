"""Digest email rendering and delivery."""

from notifier.mail.delivery import DeliveryResult, DigestDelivery, html_to_text
from notifier.mail.templates import TemplateRenderer
from notifier.mail.transport import EmailTransport, LogTransport, ResendTransport, build_transport

__all__ = [
    "DeliveryResult",
    "DigestDelivery",
    "EmailTransport",
    "LogTransport",
    "ResendTransport",
    "TemplateRenderer",
    "build_transport",
    "html_to_text",
]
