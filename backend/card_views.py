"""
Derived card views: waterfall ordering, due-date labels and calendar buckets.

Pure functions over already-fetched cards. Anything with ``priority``, ``due_date`` and
``created_at`` attributes works. Naive datetimes (SQLite returns them) are taken as UTC.
"""

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from models import CardPriority

PRIORITY_RANK = {
    CardPriority.URGENT.value: 0,
    CardPriority.HIGH.value: 1,
    CardPriority.MEDIUM.value: 2,
    CardPriority.LOW.value: 3,
}
UNKNOWN_PRIORITY_RANK = 4

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
_DAY = timedelta(days=1)


@dataclass
class CalendarDay:
    date: date
    is_current_month: bool
    is_today: bool
    cards: List[Any] = field(default_factory=list)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def priority_rank(priority) -> int:
    key = priority.value if isinstance(priority, CardPriority) else priority
    return PRIORITY_RANK.get(key, UNKNOWN_PRIORITY_RANK)


def _sort_key(card):
    due = as_utc(card.due_date)
    return (
        priority_rank(card.priority),
        due is None,
        due or _EPOCH,
        as_utc(card.created_at) or _EPOCH,
    )


def sort_cards(cards: Iterable[Any]) -> List[Any]:
    """URGENT > HIGH > MEDIUM > LOW, then earliest due date (undated last), then oldest"""
    return sorted(cards, key=_sort_key)


def days_remaining(due: datetime, now: datetime) -> int:
    return math.ceil((as_utc(due) - as_utc(now)) / _DAY)


def due_label(due: Optional[datetime], now: datetime) -> str:
    if due is None:
        return "No due date"
    days = days_remaining(due, now)
    if days < 0:
        return "Overdue"
    if days == 0:
        return "Due today"
    if days == 1:
        return "1 day left"
    return f"{days} days left"


def cards_without_due_date(cards: Iterable[Any]) -> List[Any]:
    return [c for c in cards if c.due_date is None]


def overdue_cards(cards: Iterable[Any], today: date) -> List[Any]:
    """Cards due before the end of ``today``"""
    end_of_today = datetime.combine(today + _DAY, datetime.min.time(), tzinfo=timezone.utc)
    return [c for c in cards if c.due_date is not None and as_utc(c.due_date) < end_of_today]


def calendar_month(cards: Iterable[Any], year: int, month: int, today: date) -> List[CalendarDay]:
    """Sunday-first month grid padded to whole weeks, cards bucketed by due day"""
    by_day: Dict[date, List[Any]] = {}
    for card in cards:
        if card.due_date is not None:
            by_day.setdefault(as_utc(card.due_date).date(), []).append(card)

    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    # date.weekday(): Monday == 0, so Sunday-first offset is (weekday + 1) % 7.
    # Padding stops at date.min / date.max, so year 1 and year 9999 get short weeks.
    lead = min((first.weekday() + 1) % 7, (first - date.min).days)
    trail = min(6 - (last.weekday() + 1) % 7, (date.max - last).days)
    start = first - timedelta(days=lead)

    days = []
    for offset in range(lead + (last - first).days + 1 + trail):
        current = start + timedelta(days=offset)
        days.append(CalendarDay(
            date=current,
            is_current_month=current.month == month,
            is_today=current == today,
            cards=by_day.get(current, []),
        ))
    return days
