"""Digest periods: date-range arithmetic and per-period limits."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Mapping

from dateutil.relativedelta import relativedelta

from notifier.errors import ValidationError


class DigestPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Any) -> DigestPeriod:
        """Parse a period name (case-insensitive). Unknown names are a ValidationError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ValidationError(f"Invalid period {value!r}; expected one of: {allowed}") from None


@dataclass(frozen=True)
class PeriodSettings:
    """Query limits, token budget and prompt slice sizes for one period."""

    unread_limit: int
    top_senders: int
    max_tokens: int
    prompt_senders: int
    prompt_urgent: int
    prompt_unread: int

    def merged(self, overrides: Mapping[str, Any]) -> PeriodSettings:
        known = {f.name for f in fields(self)}
        return replace(self, **{k: int(v) for k, v in overrides.items() if k in known})


DEFAULT_PERIOD_SETTINGS: Dict[DigestPeriod, PeriodSettings] = {
    DigestPeriod.DAILY: PeriodSettings(
        unread_limit=20, top_senders=5, max_tokens=600,
        prompt_senders=3, prompt_urgent=3, prompt_unread=5,
    ),
    DigestPeriod.WEEKLY: PeriodSettings(
        unread_limit=30, top_senders=7, max_tokens=800,
        prompt_senders=3, prompt_urgent=3, prompt_unread=5,
    ),
    DigestPeriod.MONTHLY: PeriodSettings(
        unread_limit=50, top_senders=10, max_tokens=1000,
        prompt_senders=5, prompt_urgent=5, prompt_unread=8,
    ),
}


@dataclass(frozen=True)
class DateRange:
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    @property
    def start_date(self) -> str:
        return self.start.date().isoformat()

    @property
    def end_date(self) -> str:
        return self.end.date().isoformat()


def date_range(period: DigestPeriod, now: datetime) -> DateRange:
    """Range ending at tomorrow 00:00 (in ``now``'s timezone) and spanning the period."""
    tomorrow = (now + timedelta(days=1)).date()
    end = datetime.combine(tomorrow, time.min, tzinfo=now.tzinfo)

    if period is DigestPeriod.DAILY:
        start = end - timedelta(days=1)
    elif period is DigestPeriod.WEEKLY:
        start = end - timedelta(days=7)
    else:
        start = end - relativedelta(months=1)

    return DateRange(start=start, end=end)
