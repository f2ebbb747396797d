"""Tests for deadline and notice window calculations."""

from datetime import date
from types import SimpleNamespace

import pytest

from clm.services.deadlines import (
    NoticeStatus,
    classify_notice,
    next_deadline,
    notice_window,
)


def contract(term_date=None, renewal_decision_deadline=None, notice_period_days=None):
    return SimpleNamespace(
        term_date=term_date,
        renewal_decision_deadline=renewal_decision_deadline,
        notice_period_days=notice_period_days,
    )


class TestNextDeadline:
    def test_renewal_decision_before_term(self):
        c = contract(term_date=date(2025, 12, 31), renewal_decision_deadline=date(2025, 10, 1))
        deadline = next_deadline(c, today=date(2025, 9, 1))
        assert deadline.date == date(2025, 10, 1)
        assert deadline.label == "renewal_decision"
        assert deadline.days_remaining == 30

    def test_term_only(self):
        deadline = next_deadline(contract(term_date=date(2025, 12, 31)), today=date(2025, 12, 1))
        assert deadline.label == "term"
        assert deadline.days_remaining == 30

    def test_no_dates(self):
        assert next_deadline(contract(), today=date(2025, 1, 1)) is None

    def test_past_dates_are_negative(self):
        deadline = next_deadline(contract(term_date=date(2025, 1, 1)), today=date(2025, 1, 11))
        assert deadline.days_remaining == -10

    def test_same_day_prefers_renewal_decision(self):
        c = contract(term_date=date(2025, 6, 30), renewal_decision_deadline=date(2025, 6, 30))
        assert next_deadline(c, today=date(2025, 6, 1)).label == "renewal_decision"


class TestClassifyNotice:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (-1, NoticeStatus.closed),
            (0, NoticeStatus.urgent),
            (30, NoticeStatus.urgent),
            (31, NoticeStatus.normal),
        ],
    )
    def test_boundaries(self, days, expected):
        assert classify_notice(days) == expected

    def test_custom_threshold(self):
        assert classify_notice(10, urgent_days=7) == NoticeStatus.normal


class TestNoticeWindow:
    def test_window_already_closed(self):
        c = contract(term_date=date(2025, 12, 31), notice_period_days=60)
        window = notice_window(c, today=date(2025, 11, 10))
        assert window.notice_date == date(2025, 11, 1)
        assert window.days_until_notice == -9
        assert window.status == NoticeStatus.closed
        assert window.notice_days == 60

    def test_window_normal(self):
        c = contract(term_date=date(2025, 12, 31), notice_period_days=60)
        window = notice_window(c, today=date(2025, 6, 1))
        assert window.status == NoticeStatus.normal

    def test_notice_date_is_today(self):
        c = contract(term_date=date(2025, 12, 31), notice_period_days=30)
        window = notice_window(c, today=date(2025, 12, 1))
        assert window.days_until_notice == 0
        assert window.status == NoticeStatus.urgent

    @pytest.mark.parametrize("days", [None, 0, -5])
    def test_requires_positive_notice_period(self, days):
        assert notice_window(contract(term_date=date(2025, 12, 31), notice_period_days=days)) is None

    def test_requires_term_date(self):
        assert notice_window(contract(notice_period_days=60)) is None
