"""Localized strings for digests and digest emails (``en`` and ``pt-BR``)."""

from __future__ import annotations

from typing import Dict

from notifier.periods import DigestPeriod

DEFAULT_LOCALE = "en"

_STRINGS: Dict[str, Dict[str, str]] = {
    "en": {
        "language": "English",
        "period.daily": "daily",
        "period.weekly": "weekly",
        "period.monthly": "monthly",
        "title.daily": "Daily",
        "title.weekly": "Weekly",
        "title.monthly": "Monthly",
        "digest.empty": "No unread notifications to summarize for this {period} digest.",
        "digest.unavailable": "Could not generate the digest.",
        "email.subject": "{title} Digest from {start} to {end}",
        "email.heading": "{title} Digest",
        "email.range": "Period",
        "email.total": "Notifications in period",
        "email.unread": "Unread",
        "email.urgent": "Urgent",
        "email.senders": "Top senders",
        "email.insights": "Insights",
        "email.most_active_day": "Most active day",
        "email.categories": "Main categories",
        "email.trends": "Trend",
        "email.footer": "Generated at {time}",
    },
    "pt-BR": {
        "language": "Brazilian Portuguese",
        "period.daily": "diário",
        "period.weekly": "semanal",
        "period.monthly": "mensal",
        "title.daily": "Diário",
        "title.weekly": "Semanal",
        "title.monthly": "Mensal",
        "digest.empty": "Nenhuma notificação não lida para resumir neste digest {period}.",
        "digest.unavailable": "Não foi possível gerar o digest.",
        "email.subject": "Digest {title} de {start} à {end}",
        "email.heading": "Digest {title}",
        "email.range": "Período",
        "email.total": "Notificações no período",
        "email.unread": "Não lidas",
        "email.urgent": "Urgentes",
        "email.senders": "Principais remetentes",
        "email.insights": "Insights",
        "email.most_active_day": "Dia mais ativo",
        "email.categories": "Categorias principais",
        "email.trends": "Tendência",
        "email.footer": "Gerado em {time}",
    },
}


def text(locale: str, key: str, **kwargs: object) -> str:
    """Look up ``key`` for ``locale`` (falling back to English) and format it."""
    table = _STRINGS.get(locale) or _STRINGS[DEFAULT_LOCALE]
    template = table.get(key, _STRINGS[DEFAULT_LOCALE][key])
    return template.format(**kwargs) if kwargs else template


def period_name(locale: str, period: DigestPeriod) -> str:
    return text(locale, f"period.{period.value}")


def period_title(locale: str, period: DigestPeriod) -> str:
    return text(locale, f"title.{period.value}")
