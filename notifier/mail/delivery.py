"""Digest delivery: subject, HTML body and plain-text alternative, sent best-effort."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, Optional

from bs4 import BeautifulSoup
from jinja2 import TemplateError

from notifier.digest.engine import DigestResult
from notifier.i18n import period_title, text
from notifier.mail.templates import TemplateRenderer
from notifier.mail.transport import EmailTransport

logger = logging.getLogger(__name__)

DIGEST_TEMPLATE = "digest/base.html"


@dataclass
class DeliveryResult:
    success: bool
    email_id: Optional[str] = None
    error: Optional[str] = None


class DigestDelivery:
    """Render a :class:`DigestResult` into an email and hand it to a transport."""

    def __init__(
        self,
        renderer: TemplateRenderer,
        transport: EmailTransport,
        from_address: str,
        to_address: str,
        locale: str = "en",
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.renderer = renderer
        self.transport = transport
        self.from_address = from_address
        self.to_address = to_address
        self.locale = locale
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(self.tz))

    def build_subject(self, result: DigestResult) -> str:
        return text(
            self.locale,
            "email.subject",
            title=period_title(self.locale, result.period),
            start=result.start_date,
            end=result.end_date,
        )

    def template_variables(self, result: DigestResult) -> Dict[str, Any]:
        title = period_title(self.locale, result.period)
        generated_at = self.clock().strftime("%Y-%m-%d %H:%M")
        return {
            "lang": self.locale,
            "subject": self.build_subject(result),
            "heading": text(self.locale, "email.heading", title=title),
            "digest": result.digest,
            "period": result.period.value,
            "start_date": result.start_date,
            "end_date": result.end_date,
            "total_notifications": result.total_notifications,
            "unread_count": result.unread_count,
            "urgent_count": len(result.urgent_notifications),
            "top_senders": list(result.top_senders),
            "insights": result.insights.to_dict(),
            "labels": {
                key: text(self.locale, f"email.{key}")
                for key in (
                    "range", "total", "unread", "urgent", "senders",
                    "insights", "most_active_day", "categories", "trends",
                )
            },
            "footer": text(self.locale, "email.footer", time=generated_at),
        }

    def render_body(self, result: DigestResult) -> str:
        """HTML body from the digest template, or a minimal inline page if rendering fails."""
        variables = self.template_variables(result)
        try:
            return self.renderer.render(DIGEST_TEMPLATE, variables)
        except TemplateError as e:
            logger.warning("Digest template %s unavailable (%s); using inline HTML", DIGEST_TEMPLATE, e)
        except Exception:
            logger.exception("Digest template %s failed to render; using inline HTML", DIGEST_TEMPLATE)
        return _inline_html(variables)

    async def send(self, result: DigestResult) -> DeliveryResult:
        """Send the digest email. Never raises; failures come back in the result."""
        try:
            subject = self.build_subject(result)
            body = self.render_body(result)
            plain = html_to_text(body)
            email_id = await self.transport.send(
                self.from_address, self.to_address, subject, body, plain
            )
        except Exception as e:
            logger.error("Failed to send %s digest email: %s", result.period.value, e)
            return DeliveryResult(success=False, error=str(e))

        logger.info("Sent %s digest email %s to %s", result.period.value, email_id, self.to_address)
        return DeliveryResult(success=True, email_id=email_id)


def html_to_text(body: str) -> str:
    soup = BeautifulSoup(body, "html.parser")
    for tag in soup(["style", "script", "title"]):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


def _inline_html(variables: Dict[str, Any]) -> str:
    esc = html.escape
    digest = esc(variables["digest"]).replace("\n", "<br>")
    return (
        f"<html><body>"
        f"<h1>{esc(variables['heading'])}</h1>"
        f"<p>{esc(variables['start_date'])} - {esc(variables['end_date'])}</p>"
        f"<p>{variables['total_notifications']} / {variables['unread_count']} / "
        f"{variables['urgent_count']}</p>"
        f"<div>{digest}</div>"
        f"<p>{esc(variables['footer'])}</p>"
        f"</body></html>"
    )
