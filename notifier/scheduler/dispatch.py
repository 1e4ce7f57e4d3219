"""Map cron trigger expressions onto scheduler jobs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Mapping, Optional

from notifier.errors import UnrecognizedScheduleError
from notifier.periods import DigestPeriod
from notifier.scheduler.jobs import Scheduler

logger = logging.getLogger(__name__)


class TriggerDispatcher:
    """Dispatch a fired cron expression to the matching digest job.

    Expressions are matched exactly after whitespace normalization, so the
    host scheduler must pass the same string that is configured.
    """

    def __init__(self, scheduler: Scheduler, triggers: Mapping[str, DigestPeriod]) -> None:
        self.scheduler = scheduler
        self.triggers = {_normalize(cron): DigestPeriod.parse(p) for cron, p in triggers.items()}

    def resolve(self, cron: str) -> DigestPeriod:
        try:
            return self.triggers[_normalize(cron)]
        except KeyError:
            raise UnrecognizedScheduleError(cron) from None

    async def dispatch(self, cron: str, trigger_time: Optional[datetime] = None) -> bool:
        """Run the job for ``cron``. Unknown triggers are logged and ignored (returns False)."""
        try:
            period = self.resolve(cron)
        except UnrecognizedScheduleError as e:
            logger.warning("%s", e)
            return False

        jobs = {
            DigestPeriod.DAILY: self.scheduler.execute_daily_job,
            DigestPeriod.WEEKLY: self.scheduler.execute_weekly_job,
            DigestPeriod.MONTHLY: self.scheduler.execute_monthly_job,
        }
        await jobs[period](trigger_time)
        return True


def _normalize(cron: str) -> str:
    return " ".join(cron.split())
