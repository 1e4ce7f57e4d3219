"""Pure statistics over a list of notifications: urgency, senders, categories, activity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from notifier.config import DEFAULT_URGENT_KEYWORDS
from notifier.periods import DigestPeriod
from notifier.storage.models import Notification

logger = logging.getLogger(__name__)

GENERAL_CATEGORY = "General"

# First match wins, in this order.
CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Sales", ("venda", "pedido", "sale", "order")),
    ("Support", ("suporte", "problema", "support", "issue")),
    ("Marketing", ("marketing", "campanha", "campaign")),
)


@dataclass
class Insights:
    """Derived, non-persisted statistics for a digest period."""

    most_active_day: Optional[str] = None
    categories: Optional[Dict[str, int]] = None
    trends: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.most_active_day is not None:
            out["most_active_day"] = self.most_active_day
        if self.categories is not None:
            out["categories"] = dict(self.categories)
        if self.trends is not None:
            out["trends"] = self.trends
        return out


def is_urgent(notification: Notification, keywords: Iterable[str] = DEFAULT_URGENT_KEYWORDS) -> bool:
    subject = (notification.subject or "").lower()
    body = (notification.body or "").lower()
    return any(k in subject or k in body for k in keywords)


def classify_urgent(
    notifications: Sequence[Notification],
    keywords: Iterable[str] = DEFAULT_URGENT_KEYWORDS,
) -> List[Notification]:
    """Notifications whose subject or body mentions an urgency keyword (input order kept)."""
    lowered = tuple(k.lower() for k in keywords)
    return [n for n in notifications if is_urgent(n, lowered)]


def sender_identity(notification: Notification, key: str = "email") -> str:
    """Email by default, falling back to name; ``key="name"`` prefers the name."""
    if key == "name":
        return notification.name or notification.email
    return notification.email or notification.name


def count_senders(notifications: Sequence[Notification], key: str = "email") -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for n in notifications:
        sender = sender_identity(n, key)
        if sender:
            counts[sender] = counts.get(sender, 0) + 1
    return counts


def rank_senders(
    notifications: Sequence[Notification],
    top_n: int,
    key: str = "email",
) -> List[str]:
    """Most frequent senders, descending by count; ties keep first-seen order."""
    if top_n <= 0:
        return []
    counts = count_senders(notifications, key)
    # sorted() is stable and dicts keep insertion order, so ties stay first-seen.
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [sender for sender, _ in ranked[:top_n]]


def category_of(notification: Notification) -> str:
    for text in (notification.subject, notification.body):
        lowered = (text or "").lower()
        for name, words in CATEGORY_KEYWORDS:
            if any(w in lowered for w in words):
                return name
    return GENERAL_CATEGORY


def categorize(notifications: Sequence[Notification]) -> Dict[str, int]:
    """Count notifications per heuristic category (Sales, Support, Marketing, General)."""
    categories: Dict[str, int] = {}
    for n in notifications:
        name = category_of(n)
        categories[name] = categories.get(name, 0) + 1
    return categories


def most_active_day(
    notifications: Sequence[Notification],
    tz: Optional[tzinfo] = None,
) -> Optional[str]:
    """ISO date with the most notifications sent; ties keep first-seen order.

    Notifications without a usable ``sent_at`` are skipped.
    """
    day_count: Dict[str, int] = {}
    for n in notifications:
        if n.sent_at is None:
            logger.warning("Notification %s has no valid sent_at; excluded from day grouping", n.id)
            continue
        sent = n.sent_at.astimezone(tz) if tz is not None else n.sent_at
        day = sent.date().isoformat()
        day_count[day] = day_count.get(day, 0) + 1

    if not day_count:
        return None
    return max(day_count.items(), key=lambda kv: kv[1])[0]


def build_insights(
    notifications: Sequence[Notification],
    period: DigestPeriod,
    tz: Optional[tzinfo] = None,
) -> Insights:
    """Categories for weekly/monthly periods, most active day for monthly only."""
    insights = Insights()
    if period in (DigestPeriod.WEEKLY, DigestPeriod.MONTHLY):
        insights.categories = categorize(notifications)
    if period is DigestPeriod.MONTHLY:
        insights.most_active_day = most_active_day(notifications, tz)
    return insights
