"""Digest engine: period window → store queries → insights → AI prompt → optional mark-as-read."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from notifier.config import DigestConfig
from notifier.digest.insights import Insights, build_insights, classify_urgent, rank_senders
from notifier.digest.prompts import build_digest_prompt
from notifier.errors import ExternalServiceError
from notifier.i18n import period_name, text
from notifier.llm.completion import TextCompletion
from notifier.periods import DateRange, DigestPeriod, date_range
from notifier.storage.base import NotificationStore
from notifier.storage.models import Notification, NotificationQuery

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class DigestResult:
    """One generated digest. Never persisted."""

    digest: str
    period: DigestPeriod
    start_date: str
    end_date: str
    total_notifications: int
    unread_count: int
    top_senders: List[str] = field(default_factory=list)
    urgent_notifications: List[Notification] = field(default_factory=list)
    processed_notifications: List[Notification] = field(default_factory=list)
    insights: Insights = field(default_factory=Insights)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "digest": self.digest,
            "period": self.period.value,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "total_notifications": self.total_notifications,
            "unread_count": self.unread_count,
            "top_senders": list(self.top_senders),
            "urgent_notifications": [n.to_dict() for n in self.urgent_notifications],
            "processed_notifications": [n.to_dict() for n in self.processed_notifications],
            "insights": self.insights.to_dict(),
        }


@dataclass
class DigestOutcome:
    """Success (``result``) or failure (``error``) of one generation; never both."""

    period: DigestPeriod
    result: Optional[DigestResult] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.result is not None


class DigestEngine:
    """Builds period digests from the notification store.

    Usage:
        engine = DigestEngine(db, CompletionService(config.llm), config.digest)
        outcome = await engine.generate_digest(DigestPeriod.WEEKLY)
    """

    def __init__(
        self,
        store: NotificationStore,
        completion: TextCompletion,
        config: Optional[DigestConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.completion = completion
        self.config = config or DigestConfig()
        self.tz = self.config.tzinfo
        self.clock: Clock = clock or (lambda: datetime.now(self.tz))

    def now(self) -> datetime:
        """Current time from the injected clock, as an aware datetime in the digest timezone."""
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def date_range(self, period: DigestPeriod, now: Optional[datetime] = None) -> DateRange:
        if now is not None and now.tzinfo is None:
            now = now.replace(tzinfo=self.tz)
        return date_range(period, now.astimezone(self.tz) if now else self.now())

    async def generate_digest(
        self,
        period: DigestPeriod,
        mark_urgent_as_read: bool = True,
    ) -> DigestOutcome:
        """Run the whole pipeline once. Collaborator failures yield a failed outcome."""
        period = DigestPeriod.parse(period)
        try:
            result = await self._generate(period, mark_urgent_as_read)
        except ExternalServiceError as e:
            logger.error("Digest %s failed: %s", period.value, e)
            return DigestOutcome(period=period, error=f"Failed to generate {period.value} digest: {e}")
        return DigestOutcome(period=period, result=result)

    async def _generate(self, period: DigestPeriod, mark_urgent_as_read: bool) -> DigestResult:
        settings = self.config.settings_for(period)
        window = self.date_range(period)
        locale = self.config.locale

        logger.info(
            "Generating %s digest for [%s, %s)", period.value, window.start.isoformat(), window.end.isoformat()
        )

        # Independent reads
        period_set, unread = await asyncio.gather(
            self.store.find_many(NotificationQuery(sent_since=window.start, sent_before=window.end)),
            self.store.find_many(NotificationQuery(unread_only=True, limit=settings.unread_limit)),
        )

        urgent = classify_urgent(unread, self.config.urgent_keywords)
        top_senders = rank_senders(unread, settings.top_senders)
        insights = build_insights(period_set, period, self.tz)

        result = DigestResult(
            digest="",
            period=period,
            start_date=window.start_date,
            end_date=window.end_date,
            total_notifications=len(period_set),
            unread_count=len(unread),
            top_senders=top_senders,
            urgent_notifications=urgent,
            insights=insights,
        )

        if not unread:
            logger.info("No unread notifications; skipping AI call for %s digest", period.value)
            result.digest = text(locale, "digest.empty", period=period_name(locale, period))
            return result

        prompt = build_digest_prompt(
            period, window, settings, len(period_set), unread, urgent, top_senders, insights, locale
        )
        completion = await self.completion.complete(
            prompt.messages(),
            max_tokens=settings.max_tokens,
            temperature=self.config.temperature,
        )
        result.digest = completion.text.strip() or text(locale, "digest.unavailable")

        if mark_urgent_as_read and urgent:
            result.processed_notifications = await self._mark_read(urgent)

        logger.info(
            "%s digest ready: %d in period, %d unread, %d urgent, %d marked read",
            period.value.capitalize(),
            result.total_notifications,
            result.unread_count,
            len(urgent),
            len(result.processed_notifications),
        )
        return result

    async def _mark_read(self, urgent: List[Notification]) -> List[Notification]:
        """One batched update for exactly the urgent rows, matched by id.

        The rows are read back afterwards so the in-memory objects carry the
        stored ``read_at``, including rows another run marked first.
        """
        ids = [n.id for n in urgent if n.id is not None]
        if not ids:
            return []

        updated = await self.store.update_many(ids, self.now())
        stored = {n.id: n.read_at for n in await self.store.find_many(NotificationQuery(ids=ids))}
        if updated < len(ids):
            logger.info("%d urgent notification(s) were already marked read", len(ids) - updated)

        processed = []
        for n in urgent:
            if stored.get(n.id) is not None:
                n.read_at = stored[n.id]
                processed.append(n)
        return processed
