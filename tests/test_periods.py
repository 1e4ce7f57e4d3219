"""Tests for digest periods and date-range arithmetic."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from dateutil import tz

from notifier.errors import ValidationError
from notifier.periods import DEFAULT_PERIOD_SETTINGS, DigestPeriod, date_range

SAO_PAULO = tz.gettz("America/Sao_Paulo")


class TestDigestPeriod:
    def test_parse_case_insensitive(self):
        assert DigestPeriod.parse("Weekly") is DigestPeriod.WEEKLY
        assert DigestPeriod.parse(" monthly ") is DigestPeriod.MONTHLY
        assert DigestPeriod.parse(DigestPeriod.DAILY) is DigestPeriod.DAILY

    def test_parse_unknown(self):
        with pytest.raises(ValidationError, match="Invalid period"):
            DigestPeriod.parse("yearly")

    def test_settings_merge(self):
        merged = DEFAULT_PERIOD_SETTINGS[DigestPeriod.DAILY].merged({"unread_limit": "5", "bogus": 1})
        assert merged.unread_limit == 5
        assert merged.max_tokens == 600


class TestDateRange:
    def test_daily_ends_tomorrow_midnight(self):
        now = datetime(2026, 10, 17, 15, 30, tzinfo=SAO_PAULO)
        window = date_range(DigestPeriod.DAILY, now)
        assert window.end == datetime(2026, 10, 18, 0, 0, tzinfo=SAO_PAULO)
        assert window.start == datetime(2026, 10, 17, 0, 0, tzinfo=SAO_PAULO)
        assert (window.start_date, window.end_date) == ("2026-10-17", "2026-10-18")

    def test_weekly_spans_seven_days(self):
        now = datetime(2026, 10, 19, 3, 0, tzinfo=SAO_PAULO)
        window = date_range(DigestPeriod.WEEKLY, now)
        assert window.end - window.start == timedelta(days=7)
        assert window.start_date == "2026-10-13"

    def test_monthly_is_one_calendar_month(self):
        now = datetime(2026, 3, 31, 12, 0, tzinfo=SAO_PAULO)
        window = date_range(DigestPeriod.MONTHLY, now)
        assert window.end == datetime(2026, 4, 1, tzinfo=SAO_PAULO)
        assert window.start == datetime(2026, 3, 1, tzinfo=SAO_PAULO)

    def test_monthly_clamps_short_month(self):
        # end is Mar 31, one month earlier clamps to Feb 28
        now = datetime(2026, 3, 30, 9, 0, tzinfo=SAO_PAULO)
        window = date_range(DigestPeriod.MONTHLY, now)
        assert window.end_date == "2026-03-31"
        assert window.start_date == "2026-02-28"

    def test_year_boundary(self):
        now = datetime(2026, 12, 31, 23, 59, tzinfo=SAO_PAULO)
        window = date_range(DigestPeriod.DAILY, now)
        assert window.end_date == "2027-01-01"
        assert window.start_date == "2026-12-31"

    @pytest.mark.parametrize("period", list(DigestPeriod))
    def test_end_is_midnight_after_now(self, period):
        now = datetime(2026, 10, 17, 10, 0, tzinfo=SAO_PAULO)
        window = date_range(period, now)
        assert window.start < now < window.end
        assert (window.end.hour, window.end.minute) == (0, 0)
