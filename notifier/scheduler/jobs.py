"""Scheduled digest jobs: generate a period digest, then email it best-effort."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Dict, Optional

from notifier.digest.engine import DigestEngine, DigestOutcome
from notifier.mail.delivery import DigestDelivery
from notifier.periods import DigestPeriod

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 200

DEFAULT_MARK_URGENT_AS_READ: Dict[DigestPeriod, bool] = {
    DigestPeriod.DAILY: False,
    DigestPeriod.WEEKLY: True,
    DigestPeriod.MONTHLY: True,
}


class Scheduler:
    """Runs the daily, weekly and monthly digest jobs.

    Usage:
        scheduler = Scheduler(engine, delivery)
        await scheduler.execute_weekly_job(datetime.now(timezone.utc))

    A failed digest is logged and skips delivery. Delivery problems are
    logged and never fail the job. Anything unexpected is logged with its
    traceback and re-raised to the caller.
    """

    def __init__(
        self,
        engine: DigestEngine,
        delivery: Optional[DigestDelivery],
        mark_urgent_as_read: Optional[Dict[DigestPeriod, bool]] = None,
    ) -> None:
        self.engine = engine
        self.delivery = delivery
        self.mark_urgent_as_read = dict(DEFAULT_MARK_URGENT_AS_READ)
        if mark_urgent_as_read:
            self.mark_urgent_as_read.update(mark_urgent_as_read)

    async def execute_daily_job(self, trigger_time: Optional[datetime] = None) -> DigestOutcome:
        return await self.run(DigestPeriod.DAILY, trigger_time)

    async def execute_weekly_job(self, trigger_time: Optional[datetime] = None) -> DigestOutcome:
        return await self.run(DigestPeriod.WEEKLY, trigger_time)

    async def execute_monthly_job(self, trigger_time: Optional[datetime] = None) -> DigestOutcome:
        return await self.run(DigestPeriod.MONTHLY, trigger_time)

    async def run(self, period: DigestPeriod, trigger_time: Optional[datetime] = None) -> DigestOutcome:
        period = DigestPeriod.parse(period)
        logger.info(
            "Starting %s digest job (trigger %s)",
            period.value,
            trigger_time.isoformat() if trigger_time else "manual",
        )
        t0 = time.monotonic()

        try:
            outcome = await self.engine.generate_digest(
                period, mark_urgent_as_read=self.mark_urgent_as_read[period]
            )
        except Exception:
            logger.exception("%s digest job crashed", period.value.capitalize())
            raise

        if not outcome.success:
            logger.error("%s digest job failed: %s", period.value.capitalize(), outcome.error)
            return outcome

        result = outcome.result
        assert result is not None
        logger.info(
            "%s digest generated in %.1fs: %d in period, %d unread, %d urgent, %d processed",
            period.value.capitalize(),
            time.monotonic() - t0,
            result.total_notifications,
            result.unread_count,
            len(result.urgent_notifications),
            len(result.processed_notifications),
        )
        logger.info("Digest preview: %s", result.digest[:PREVIEW_CHARS])

        await self._deliver(outcome)
        return outcome

    async def _deliver(self, outcome: DigestOutcome) -> None:
        if self.delivery is None:
            logger.info("No email delivery configured; %s digest not sent", outcome.period.value)
            return
        try:
            delivery = await self.delivery.send(outcome.result)
        except Exception as e:
            logger.error("Email delivery for %s digest raised: %s", outcome.period.value, e)
            return
        if delivery.success:
            logger.info("%s digest email sent: %s", outcome.period.value.capitalize(), delivery.email_id)
        else:
            logger.error("Failed to send %s digest email: %s", outcome.period.value, delivery.error)
