# tests/test_card_views.py — Waterfall ordering, due labels and calendar grid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from card_views import (
    sort_cards, due_label, days_remaining, calendar_month, cards_without_due_date,
    overdue_cards, priority_rank, UNKNOWN_PRIORITY_RANK,
)
from models import CardPriority

NOW = datetime(2024, 6, 12, 9, 30, tzinfo=timezone.utc)


@dataclass
class FakeCard:
    title: str
    priority: str = "MEDIUM"
    due_date: Optional[datetime] = None
    created_at: datetime = NOW


def test_priority_rank():
    assert priority_rank(CardPriority.URGENT) == 0
    assert priority_rank("LOW") == 3
    assert priority_rank("SOMEDAY") == UNKNOWN_PRIORITY_RANK


def test_sort_by_priority_then_due_then_age():
    cards = [
        FakeCard("low", "LOW"),
        FakeCard("medium undated", "MEDIUM"),
        FakeCard("medium late", "MEDIUM", NOW + timedelta(days=9)),
        FakeCard("medium soon", "MEDIUM", NOW + timedelta(days=1)),
        FakeCard("urgent", "URGENT"),
        FakeCard("medium older", "MEDIUM", NOW + timedelta(days=1), NOW - timedelta(days=3)),
    ]
    assert [c.title for c in sort_cards(cards)] == [
        "urgent", "medium older", "medium soon", "medium late", "medium undated", "low",
    ]


def test_sort_accepts_naive_datetimes():
    """SQLite hands back naive timestamps"""
    naive = FakeCard("naive", due_date=datetime(2024, 6, 13), created_at=datetime(2024, 6, 1))
    aware = FakeCard("aware", due_date=NOW + timedelta(days=3))
    assert [c.title for c in sort_cards([aware, naive])] == ["naive", "aware"]


@pytest.mark.parametrize("due,expected", [
    (None, "No due date"),
    (NOW - timedelta(days=2), "Overdue"),
    (NOW - timedelta(hours=3), "Due today"),
    (NOW, "Due today"),
    (NOW + timedelta(hours=3), "1 day left"),
    (NOW + timedelta(days=1), "1 day left"),
    (NOW + timedelta(days=4, hours=1), "5 days left"),
])
def test_due_label(due, expected):
    assert due_label(due, NOW) == expected


def test_days_remaining_rounds_up():
    assert days_remaining(NOW + timedelta(hours=1), NOW) == 1
    assert days_remaining(NOW - timedelta(hours=25), NOW) == -1


def test_without_due_date_and_overdue():
    today = NOW.date()
    cards = [
        FakeCard("undated"),
        FakeCard("yesterday", due_date=NOW - timedelta(days=1)),
        FakeCard("tonight", due_date=datetime(2024, 6, 12, 23, 0, tzinfo=timezone.utc)),
        FakeCard("tomorrow", due_date=datetime(2024, 6, 13, 0, 0, tzinfo=timezone.utc)),
    ]
    assert [c.title for c in cards_without_due_date(cards)] == ["undated"]
    assert [c.title for c in overdue_cards(cards, today)] == ["yesterday", "tonight"]


def test_calendar_grid_is_sunday_first():
    days = calendar_month([], 2024, 6, NOW.date())
    # June 2024: Saturday the 1st through Sunday the 30th
    assert days[0].date == date(2024, 5, 26)
    assert days[-1].date == date(2024, 7, 6)
    assert len(days) % 7 == 0
    assert all(d.date.weekday() == 6 for d in days[::7])
    assert [d.date for d in days if d.is_today] == [date(2024, 6, 12)]
    assert sum(d.is_current_month for d in days) == 30


def test_calendar_month_starting_on_sunday():
    days = calendar_month([], 2024, 9, NOW.date())
    assert days[0].date == date(2024, 9, 1)
    assert days[-1].date == date(2024, 10, 5)


def test_calendar_buckets_cards_by_due_day():
    cards = [
        FakeCard("a", due_date=datetime(2024, 6, 3, 8, 0, tzinfo=timezone.utc)),
        FakeCard("b", due_date=datetime(2024, 6, 3, 17, 0, tzinfo=timezone.utc)),
        FakeCard("c", due_date=datetime(2024, 7, 2, tzinfo=timezone.utc)),
        FakeCard("d"),
    ]
    by_day = {d.date: [c.title for c in d.cards] for d in calendar_month(cards, 2024, 6, NOW.date())}
    assert by_day[date(2024, 6, 3)] == ["a", "b"]
    # Padding days from the next month still show their cards
    assert by_day[date(2024, 7, 2)] == ["c"]
    assert sum(len(v) for v in by_day.values()) == 3


def test_calendar_stops_at_first_representable_day():
    # 0001-01-01 is a Monday; the Sunday before it does not exist
    days = calendar_month([], 1, 1, NOW.date())
    assert days[0].date == date.min
    assert days[-1].date == date(1, 2, 3)
    assert sum(d.is_current_month for d in days) == 31


def test_calendar_stops_at_last_representable_day():
    # 9999-12-31 is a Friday; the Saturday after it does not exist
    days = calendar_month([], 9999, 12, NOW.date())
    assert days[0].date == date(9999, 11, 28)
    assert days[-1].date == date.max
    assert sum(d.is_current_month for d in days) == 31
