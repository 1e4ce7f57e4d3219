"""Tests for scheduled digest jobs and cron trigger dispatch."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from notifier.digest.engine import DigestEngine, DigestOutcome, DigestResult
from notifier.errors import CompletionServiceError, UnrecognizedScheduleError
from notifier.mail.delivery import DeliveryResult
from notifier.periods import DigestPeriod
from notifier.scheduler import Scheduler, TriggerDispatcher

from conftest import make_notification

TRIGGER_TIME = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)
TRIGGERS = {
    "0 3 * * *": DigestPeriod.DAILY,
    "0 3 * * 1": DigestPeriod.WEEKLY,
    "0 3 1 * *": DigestPeriod.MONTHLY,
}


@pytest.fixture
def delivery():
    fake = AsyncMock()
    fake.send.return_value = DeliveryResult(success=True, email_id="email-1")
    return fake


@pytest.fixture
def engine(db, completion, digest_config, clock):
    return DigestEngine(db, completion, digest_config, clock=clock)


def make_outcome(period=DigestPeriod.DAILY) -> DigestOutcome:
    result = DigestResult(
        digest="All quiet.",
        period=period,
        start_date="2026-10-18",
        end_date="2026-10-19",
        total_notifications=0,
        unread_count=0,
    )
    return DigestOutcome(period=period, result=result)


class TestScheduler:
    @pytest.mark.asyncio
    async def test_weekly_job_with_failing_completion(self, engine, delivery, completion, caplog):
        completion.complete.side_effect = CompletionServiceError("AI service error: 503")
        await engine.store.create_notification(make_notification())
        scheduler = Scheduler(engine, delivery)

        with caplog.at_level(logging.INFO):
            outcome = await scheduler.execute_weekly_job(TRIGGER_TIME)

        assert not outcome.success
        delivery.send.assert_not_called()
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert any("Weekly digest job failed" in r.getMessage() for r in errors)

    @pytest.mark.asyncio
    async def test_successful_job_delivers(self, engine, delivery, caplog):
        await engine.store.create_notification(make_notification())
        scheduler = Scheduler(engine, delivery)

        with caplog.at_level(logging.INFO):
            outcome = await scheduler.execute_daily_job(TRIGGER_TIME)

        assert outcome.success
        delivery.send.assert_awaited_once_with(outcome.result)
        assert "Digest preview" in caplog.text
        assert "email sent: email-1" in caplog.text

    @pytest.mark.asyncio
    async def test_mark_policy_per_period(self, delivery):
        engine = AsyncMock()
        engine.generate_digest.side_effect = lambda period, mark_urgent_as_read: make_outcome(period)
        scheduler = Scheduler(engine, delivery)

        await scheduler.execute_daily_job(TRIGGER_TIME)
        await scheduler.execute_weekly_job(TRIGGER_TIME)
        await scheduler.execute_monthly_job(TRIGGER_TIME)

        calls = [(c.args[0], c.kwargs["mark_urgent_as_read"]) for c in engine.generate_digest.await_args_list]
        assert calls == [
            (DigestPeriod.DAILY, False),
            (DigestPeriod.WEEKLY, True),
            (DigestPeriod.MONTHLY, True),
        ]

    @pytest.mark.asyncio
    async def test_mark_policy_override(self, delivery):
        engine = AsyncMock()
        engine.generate_digest.return_value = make_outcome()
        scheduler = Scheduler(engine, delivery, {DigestPeriod.DAILY: True})

        await scheduler.execute_daily_job(TRIGGER_TIME)

        assert engine.generate_digest.await_args.kwargs["mark_urgent_as_read"] is True

    @pytest.mark.asyncio
    async def test_failed_delivery_does_not_fail_job(self, delivery, caplog):
        engine = AsyncMock()
        engine.generate_digest.return_value = make_outcome()
        delivery.send.return_value = DeliveryResult(success=False, error="HTTP 500")
        scheduler = Scheduler(engine, delivery)

        with caplog.at_level(logging.ERROR):
            outcome = await scheduler.execute_daily_job(TRIGGER_TIME)

        assert outcome.success
        assert "HTTP 500" in caplog.text

    @pytest.mark.asyncio
    async def test_delivery_exception_is_swallowed(self, delivery, caplog):
        engine = AsyncMock()
        engine.generate_digest.return_value = make_outcome()
        delivery.send.side_effect = RuntimeError("boom")
        scheduler = Scheduler(engine, delivery)

        with caplog.at_level(logging.ERROR):
            outcome = await scheduler.execute_daily_job(TRIGGER_TIME)

        assert outcome.success
        assert "boom" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_and_reraised(self, delivery, caplog):
        engine = AsyncMock()
        engine.generate_digest.side_effect = RuntimeError("disk on fire")
        scheduler = Scheduler(engine, delivery)

        with caplog.at_level(logging.ERROR):
            with pytest.raises(RuntimeError, match="disk on fire"):
                await scheduler.execute_monthly_job(TRIGGER_TIME)

        assert "Monthly digest job crashed" in caplog.text
        delivery.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_delivery(self, caplog):
        engine = AsyncMock()
        engine.generate_digest.return_value = make_outcome()
        scheduler = Scheduler(engine, None)

        with caplog.at_level(logging.INFO):
            outcome = await scheduler.execute_daily_job()

        assert outcome.success
        assert "not sent" in caplog.text


class TestTriggerDispatcher:
    def test_resolve(self):
        dispatcher = TriggerDispatcher(AsyncMock(), TRIGGERS)
        assert dispatcher.resolve("0 3 * * 1") is DigestPeriod.WEEKLY
        assert dispatcher.resolve("  0  3 1 * * ") is DigestPeriod.MONTHLY

    def test_resolve_unknown(self):
        dispatcher = TriggerDispatcher(AsyncMock(), TRIGGERS)
        with pytest.raises(UnrecognizedScheduleError) as exc:
            dispatcher.resolve("*/5 * * * *")
        assert exc.value.trigger == "*/5 * * * *"
        assert str(exc.value) == "Unrecognized schedule: */5 * * * *"

    @pytest.mark.asyncio
    async def test_dispatch_runs_matching_job(self):
        scheduler = AsyncMock()
        dispatcher = TriggerDispatcher(scheduler, TRIGGERS)

        assert await dispatcher.dispatch("0 3 * * 1", TRIGGER_TIME) is True

        scheduler.execute_weekly_job.assert_awaited_once_with(TRIGGER_TIME)
        scheduler.execute_daily_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_dispatch_unknown_is_ignored(self, caplog):
        scheduler = AsyncMock()
        dispatcher = TriggerDispatcher(scheduler, TRIGGERS)

        with caplog.at_level(logging.WARNING):
            assert await dispatcher.dispatch("0 0 * * *", TRIGGER_TIME) is False

        assert "Unrecognized schedule: 0 0 * * *" in caplog.text
        assert not scheduler.mock_calls

    @pytest.mark.asyncio
    async def test_dispatch_reraises_job_errors(self):
        scheduler = AsyncMock()
        scheduler.execute_daily_job.side_effect = RuntimeError("job failed")
        dispatcher = TriggerDispatcher(scheduler, TRIGGERS)

        with pytest.raises(RuntimeError):
            await dispatcher.dispatch("0 3 * * *", TRIGGER_TIME)
