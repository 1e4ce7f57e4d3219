"""Tests for the pure insight functions."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from notifier.digest.insights import (
    build_insights,
    categorize,
    classify_urgent,
    count_senders,
    most_active_day,
    rank_senders,
)
from notifier.periods import DigestPeriod

from conftest import FIXED_NOW, SAO_PAULO, make_notification


class TestClassifyUrgent:
    def test_matches_subject_or_body_case_insensitive(self):
        items = [
            make_notification(subject="Ação URGENTE necessária"),
            make_notification(subject="Hello", body="This is CRITICAL"),
            make_notification(subject="Lunch", body="See you"),
        ]
        urgent = classify_urgent(items)
        assert urgent == items[:2]

    def test_accented_portuguese_keywords(self):
        items = [make_notification(body="Situação de emergência no servidor")]
        assert classify_urgent(items) == items

    def test_keeps_input_order_and_is_idempotent(self):
        items = [
            make_notification(subject=f"urgent {i}", id=i) for i in range(5)
        ]
        once = classify_urgent(items)
        assert once == items
        assert classify_urgent(once) == once

    def test_same_subset_for_any_input_order(self):
        items = [
            make_notification(id=1, subject="Lunch menu", body="Pasta"),
            make_notification(id=2, subject="Prioridade máxima"),
            make_notification(id=3, subject="Status", body="Nothing new"),
            make_notification(id=4, subject="Hi", body="important: sign the contract"),
            make_notification(id=5, subject="URGENTE"),
        ]
        forward = classify_urgent(items)
        backward = classify_urgent(list(reversed(items)))
        shuffled = classify_urgent([items[3], items[0], items[4], items[2], items[1]])

        expected = {2, 4, 5}
        assert {n.id for n in forward} == expected
        assert {n.id for n in backward} == expected
        assert {n.id for n in shuffled} == expected
        assert {n.id for n in classify_urgent(backward)} == expected

    def test_custom_keywords(self):
        items = [make_notification(subject="Server DOWN"), make_notification(subject="urgent")]
        assert classify_urgent(items, ["down"]) == items[:1]

    def test_empty(self):
        assert classify_urgent([]) == []


class TestRankSenders:
    def test_descending_with_first_seen_ties(self):
        items = [
            make_notification(email="b@example.com"),
            make_notification(email="a@example.com"),
            make_notification(email="a@example.com"),
            make_notification(email="c@example.com"),
            make_notification(email="b@example.com"),
            make_notification(email="d@example.com"),
        ]
        assert rank_senders(items, 3) == ["b@example.com", "a@example.com", "c@example.com"]

    def test_truncates_and_only_known_senders(self):
        items = [make_notification(email=f"u{i}@example.com") for i in range(10)]
        ranked = rank_senders(items, 4)
        assert len(ranked) == 4
        assert set(ranked) <= {n.email for n in items}

    def test_counts_of_ranked_senders_fit_in_input(self):
        items = [
            make_notification(email=f"u{i % 4}@example.com") for i in range(11)
        ] + [make_notification(email="", name="")]
        counts = count_senders(items)
        for top_n in (1, 3, 10):
            ranked = rank_senders(items, top_n)
            assert len(ranked) <= top_n
            assert sum(counts[s] for s in ranked) <= len(items)

    def test_falls_back_to_name(self):
        items = [make_notification(email="", name="No Email")]
        assert rank_senders(items, 5) == ["No Email"]

    def test_by_name(self):
        items = [
            make_notification(name="Ana", email="x@example.com"),
            make_notification(name="Ana", email="y@example.com"),
        ]
        assert rank_senders(items, 5, key="name") == ["Ana"]

    def test_zero_top_n(self):
        assert rank_senders([make_notification()], 0) == []


class TestCategorize:
    def test_first_match_wins(self):
        items = [
            make_notification(subject="Novo pedido recebido"),
            make_notification(subject="Support issue with order"),
            make_notification(subject="Campanha de marketing"),
            make_notification(subject="Hello", body="Just saying hi"),
        ]
        # "order" hits Sales before Support
        assert categorize(items) == {"Sales": 2, "Marketing": 1, "General": 1}

    def test_subject_checked_before_body(self):
        items = [make_notification(subject="Campaign results", body="sales are up")]
        assert categorize(items) == {"Marketing": 1}

    def test_body_used_when_subject_has_no_match(self):
        items = [make_notification(subject="FYI", body="Problema no login")]
        assert categorize(items) == {"Support": 1}


class TestMostActiveDay:
    def test_highest_count(self):
        base = datetime(2026, 10, 10, 12, 0, tzinfo=timezone.utc)
        items = [
            make_notification(sent_at=base),
            make_notification(sent_at=base + timedelta(days=1)),
            make_notification(sent_at=base + timedelta(days=1, hours=2)),
        ]
        assert most_active_day(items) == "2026-10-11"

    def test_ties_keep_first_seen(self):
        base = datetime(2026, 10, 10, 12, 0, tzinfo=timezone.utc)
        items = [
            make_notification(sent_at=base + timedelta(days=2)),
            make_notification(sent_at=base),
        ]
        assert most_active_day(items) == "2026-10-12"

    def test_converts_to_timezone(self):
        # 01:00 UTC is still the previous day in Sao Paulo
        items = [make_notification(sent_at=datetime(2026, 10, 11, 1, 0, tzinfo=timezone.utc))]
        assert most_active_day(items, SAO_PAULO) == "2026-10-10"

    def test_skips_missing_sent_at(self, caplog):
        missing = make_notification(id=7)
        missing.sent_at = None
        items = [missing, make_notification(sent_at=datetime(2026, 10, 1, tzinfo=timezone.utc))]
        with caplog.at_level(logging.WARNING):
            assert most_active_day(items) == "2026-10-01"
        assert "no valid sent_at" in caplog.text

    def test_empty(self):
        assert most_active_day([]) is None


class TestBuildInsights:
    def test_daily_has_no_insights(self):
        insights = build_insights([make_notification()], DigestPeriod.DAILY)
        assert insights.to_dict() == {}

    def test_weekly_has_categories_only(self):
        insights = build_insights([make_notification(subject="sale")], DigestPeriod.WEEKLY)
        assert insights.to_dict() == {"categories": {"Sales": 1}}

    def test_monthly_has_categories_and_active_day(self):
        items = [make_notification(sent_at=FIXED_NOW)]
        insights = build_insights(items, DigestPeriod.MONTHLY, SAO_PAULO)
        assert insights.most_active_day == "2026-10-17"
        assert insights.categories == {"General": 1}

    def test_monthly_empty_period_set(self):
        insights = build_insights([], DigestPeriod.MONTHLY)
        assert insights.categories == {}
        assert insights.most_active_day is None
