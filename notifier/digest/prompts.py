"""Prompt construction for period digests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from notifier.digest.insights import Insights
from notifier.i18n import period_name, text
from notifier.periods import DateRange, DigestPeriod, PeriodSettings
from notifier.storage.models import Notification


@dataclass
class DigestPrompt:
    system: str
    user: str

    def messages(self) -> List[dict]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


_PERIOD_FOCUS = {
    DigestPeriod.DAILY: "",
    DigestPeriod.WEEKLY: "Focus on weekly patterns and planning for the next week.",
    DigestPeriod.MONTHLY: "Include an analysis of monthly trends and strategic recommendations.",
}


def build_digest_prompt(
    period: DigestPeriod,
    window: DateRange,
    settings: PeriodSettings,
    period_count: int,
    unread: Sequence[Notification],
    urgent: Sequence[Notification],
    top_senders: Sequence[str],
    insights: Insights,
    locale: str = "en",
) -> DigestPrompt:
    """System/user prompt pair embedding the period statistics."""
    name = period_name("en", period)
    over_period = " over the period" if period is not DigestPeriod.DAILY else ""

    system = (
        f"You are an executive assistant who writes {name} notification digests.\n\n"
        f"Write a professional, strategic {name} digest with these sections:\n\n"
        "1. **Period overview**: summary of the main activity\n"
        "2. **Critical pending items**: urgent notifications needing immediate attention\n"
        "3. **Period metrics**: relevant numbers and statistics\n"
        f"4. **Insights and trends**: patterns observed{over_period}\n"
        "5. **Recommended actions**: prioritized next steps\n\n"
        f"{_PERIOD_FOCUS[period]}\n"
        "Keep an executive but approachable tone. Use emojis sparingly for visual structure.\n"
        f"Write the digest in {text(locale, 'language')}."
    )

    lines = [
        f"{name.capitalize()} digest for {window.start_date} to {window.end_date}:",
        "",
        "PERIOD METRICS:",
        f"- Notifications in period: {period_count}",
        f"- Total unread: {len(unread)}",
        f"- Urgent detected: {len(urgent)}",
        "",
        "TOP SENDERS:",
        ", ".join(top_senders[: settings.prompt_senders]) or "None",
        "",
        "URGENT NOTIFICATIONS:",
        _summaries(urgent[: settings.prompt_urgent]) or "No urgent notifications detected",
        "",
        "LATEST UNREAD:",
        _summaries(unread[: settings.prompt_unread]),
    ]

    if insights.categories:
        lines += ["", "CATEGORIES:"]
        lines += [f"- {cat}: {count}" for cat, count in insights.categories.items()]
    if insights.most_active_day:
        lines += ["", f"MOST ACTIVE DAY: {insights.most_active_day}"]

    return DigestPrompt(system=system, user="\n".join(lines).rstrip())


def _summaries(notifications: Sequence[Notification]) -> str:
    return "\n".join(f"- {n.name}: {n.subject}" for n in notifications)
