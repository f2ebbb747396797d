"""Deadline calculations derived from a contract's stored dates.

Computed on read and never persisted. Functions accept anything with the
contract's date attributes (ORM row or API schema) and an optional
``today`` so callers and tests can pin the clock.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Protocol

from clm.core.config import settings

RENEWAL_DECISION_LABEL = "renewal_decision"
TERM_LABEL = "term"


class ContractDates(Protocol):
    term_date: Optional[date]
    renewal_decision_deadline: Optional[date]
    notice_period_days: Optional[int]


class NoticeStatus(str, enum.Enum):
    closed = "closed"
    urgent = "urgent"
    normal = "normal"


@dataclass(frozen=True, slots=True)
class Deadline:
    """The contract's next binding date."""

    label: str
    date: date
    days_remaining: int


@dataclass(frozen=True, slots=True)
class NoticeWindow:
    """Last day to serve a non-renewal notice before the term ends."""

    notice_date: date
    days_until_notice: int
    status: NoticeStatus
    notice_days: int


def _today(today: Optional[date]) -> date:
    if today is None:
        return datetime.now(timezone.utc).date()
    if isinstance(today, datetime):
        return today.date()
    return today


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def next_deadline(contract: ContractDates, today: Optional[date] = None) -> Optional[Deadline]:
    """Return the earliest of the renewal decision deadline and the term date.

    On equal dates the renewal decision wins, since it must be taken first.
    days_remaining is negative for dates already past.
    """
    candidates: list[tuple[date, str]] = []
    if contract.renewal_decision_deadline is not None:
        candidates.append((_as_date(contract.renewal_decision_deadline), RENEWAL_DECISION_LABEL))
    if contract.term_date is not None:
        candidates.append((_as_date(contract.term_date), TERM_LABEL))
    if not candidates:
        return None

    # min() keeps the first of equal keys: renewal decision before term
    best_date, label = min(candidates, key=lambda c: c[0])
    return Deadline(label=label, date=best_date, days_remaining=(best_date - _today(today)).days)


def classify_notice(days_until_notice: int, urgent_days: Optional[int] = None) -> NoticeStatus:
    threshold = settings.NOTICE_URGENT_DAYS if urgent_days is None else urgent_days
    if days_until_notice < 0:
        return NoticeStatus.closed
    if days_until_notice <= threshold:
        return NoticeStatus.urgent
    return NoticeStatus.normal


def notice_window(contract: ContractDates, today: Optional[date] = None) -> Optional[NoticeWindow]:
    """Return the non-renewal notice window, if the contract defines one.

    Requires a term date and a positive notice period.
    """
    notice_days = contract.notice_period_days
    if contract.term_date is None or not notice_days or notice_days <= 0:
        return None

    notice_date = _as_date(contract.term_date) - timedelta(days=notice_days)
    days_until_notice = (notice_date - _today(today)).days
    return NoticeWindow(
        notice_date=notice_date,
        days_until_notice=days_until_notice,
        status=classify_notice(days_until_notice),
        notice_days=notice_days,
    )


__all__ = [
    "Deadline",
    "NoticeStatus",
    "NoticeWindow",
    "classify_notice",
    "next_deadline",
    "notice_window",
]
