"""Tests for EventStore queries, month grids, ISO weeks and conflicts."""

from datetime import date, datetime, timedelta

import pytest
import pytz

from eventcal.errors import ArgumentError
from eventcal.event_model import Event, EventStatus
from eventcal.event_store import EventStore, week_number, week_year


def ev(uid, start, hours=1, **kwargs):
    end = start + timedelta(hours=hours) if hours is not None else None
    return Event(title=kwargs.pop('title', uid), start=start, end=end, uid=uid, **kwargs)


@pytest.fixture
def abc_store():
    day = datetime(2024, 5, 6)
    return EventStore([
        ev("A", day.replace(hour=10)),
        ev("B", day.replace(hour=10, minute=30)),
        ev("C", day.replace(hour=12)),
    ])


# ==================== Storage ====================

def test_insert_single_and_many():
    store = EventStore()

    assert store.insert(ev("one", datetime(2024, 1, 1, 9))) == 1
    assert store.insert([ev("two", datetime(2024, 1, 2, 9)), ev("three", datetime(2024, 1, 3, 9))]) == 2
    assert len(store) == 3
    assert "two" in store
    assert "four" not in store


def test_insert_rejects_non_events():
    store = EventStore()

    with pytest.raises(ArgumentError):
        store.insert("not an event")
    with pytest.raises(ArgumentError, match="Expected Event"):
        store.insert([ev("ok", datetime(2024, 1, 1)), {"title": "dict"}])
    assert len(store) == 0


def test_store_keeps_duplicate_uids_and_get_returns_first():
    first = ev("dup", datetime(2024, 1, 1, 9), title="first")
    second = ev("dup", datetime(2024, 1, 2, 9), title="second")
    store = EventStore([first, second])

    assert len(store) == 2
    assert store.get("dup") is first
    assert store.get("missing") is None
    assert store.remove(["dup"]) == 2
    assert len(store) == 0


def test_queries_return_new_lists():
    store = EventStore([ev("one", datetime(2024, 1, 1, 9))])

    store.all_events().clear()
    store.by_date(date(2024, 1, 1)).clear()

    assert len(store.all_events()) == 1


def test_clear_and_find():
    store = EventStore([ev("a", datetime(2024, 1, 1, 9)), ev("b", datetime(2024, 1, 1, 11))])

    assert [e.uid for e in store.find(lambda e: e.start.hour > 10)] == ["b"]
    store.clear()
    assert len(store) == 0


# ==================== Date queries ====================

def test_by_date_ignores_time_of_day():
    store = EventStore([
        ev("early", datetime(2024, 2, 10, 0, 0)),
        ev("late", datetime(2024, 2, 10, 23, 59)),
        ev("next", datetime(2024, 2, 11, 0, 0)),
    ])

    assert [e.uid for e in store.by_date(date(2024, 2, 10))] == ["early", "late"]
    assert [e.uid for e in store.by_date(datetime(2024, 2, 10, 15, 0))] == ["early", "late"]


def test_by_range_is_inclusive_and_sorted():
    store = EventStore([
        ev("c", datetime(2024, 3, 20, 9)),
        ev("a", datetime(2024, 3, 1, 0)),
        ev("outside", datetime(2024, 4, 1, 0)),
        ev("b", datetime(2024, 3, 10, 9)),
        ev("b2", datetime(2024, 3, 10, 9)),
    ])

    result = store.by_range(datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59))

    assert [e.uid for e in result] == ["a", "b", "b2", "c"]


def test_by_range_mixes_aware_and_naive():
    store = EventStore([
        ev("naive", datetime(2024, 3, 1, 12, 0)),
        ev("aware", pytz.UTC.localize(datetime(2024, 3, 1, 11, 0))),
    ])

    result = store.by_range(date(2024, 3, 1), date(2024, 3, 2))

    assert [e.uid for e in result] == ["aware", "naive"]


def test_by_month_covers_last_day():
    store = EventStore([
        ev("first", datetime(2024, 2, 1, 0, 0)),
        ev("last", datetime(2024, 2, 29, 23, 30)),
        ev("march", datetime(2024, 3, 1, 0, 0)),
    ])

    assert [e.uid for e in store.by_month(2024, 2)] == ["first", "last"]

    with pytest.raises(ArgumentError, match="Month"):
        store.by_month(2024, 13)


# ==================== Month grid ====================

def test_month_grid_sunday_first():
    store = EventStore([
        ev("a", datetime(2024, 5, 6, 10)),
        ev("b", datetime(2024, 5, 6, 14)),
        ev("c", datetime(2024, 5, 31, 9)),
    ])

    grid = store.month_grid(2024, 5, today=date(2024, 5, 6))

    # May 1st 2024 is a Wednesday
    assert grid.leading_blanks == 3
    assert len(grid.cells) == 3 + 31
    assert all(cell.is_blank for cell in grid.cells[:3])
    assert grid.total_events == 3

    may6 = grid.cells[3 + 5]
    assert may6.day == 6
    assert [e.uid for e in may6.events] == ["a", "b"]
    assert [cell.day for cell in grid.cells if cell.is_today] == [6]


def test_month_grid_monday_first_and_no_today():
    grid = EventStore().month_grid(2024, 5, today=date(2024, 6, 1), first_weekday=0)

    assert grid.leading_blanks == 2
    assert len(grid.cells) == 2 + 31
    assert not any(cell.is_today for cell in grid.cells)


def test_month_grid_february_leap_year():
    grid = EventStore().month_grid(2024, 2, today=date(2024, 2, 29))

    # February 1st 2024 is a Thursday
    assert len(grid.cells) == grid.leading_blanks + 29
    assert grid.cells[-1].day == 29
    assert grid.cells[-1].is_today


# ==================== ISO weeks ====================

@pytest.mark.parametrize("day, week, year", [
    (date(2021, 1, 1), 53, 2020),  # Friday
    (date(2022, 1, 1), 52, 2021),  # Saturday
    (date(2023, 1, 1), 52, 2022),  # Sunday
    (date(2024, 1, 1), 1, 2024),   # Monday
    (date(2019, 12, 30), 1, 2020),
    (date(2020, 12, 31), 53, 2020),
    (date(2024, 5, 6), 19, 2024),
])
def test_iso_week(day, week, year):
    assert week_number(day) == week
    assert week_year(day) == year
    assert (week_year(day), week_number(day)) == day.isocalendar()[:2]


def test_week_helpers_on_store():
    assert EventStore.week_number(datetime(2021, 1, 1, 12)) == 53
    assert EventStore().week_year(date(2021, 1, 1)) == 2020


# ==================== Text / attribute queries ====================

def test_search_title_description_location():
    store = EventStore([
        ev("a", datetime(2024, 1, 1), title="Team Standup"),
        ev("b", datetime(2024, 1, 2), description="Quarterly STANDUP review"),
        ev("c", datetime(2024, 1, 3), location="standup room"),
        ev("d", datetime(2024, 1, 4), title="Lunch"),
    ])

    assert [e.uid for e in store.search("standup")] == ["a", "b", "c"]
    assert store.search("nothing") == []


def test_categories():
    store = EventStore([
        ev("a", datetime(2024, 1, 1), categories=["Work", "Meeting"]),
        ev("b", datetime(2024, 1, 2), categories=["personal"]),
        ev("c", datetime(2024, 1, 3)),
    ])

    assert [e.uid for e in store.filter_by_category("work")] == ["a"]
    assert [e.uid for e in store.filter_by_category(["PERSONAL", "meeting"])] == ["a", "b"]
    assert store.all_categories() == ["Meeting", "Work", "personal"]


def test_priority_queries():
    store = EventStore([
        ev("low", datetime(2024, 1, 1), priority=9),
        ev("none", datetime(2024, 1, 2)),
        ev("top", datetime(2024, 1, 3), priority=1),
        ev("mid", datetime(2024, 1, 4), priority=5),
        ev("high", datetime(2024, 1, 5), priority=3),
    ])

    assert [e.uid for e in store.by_priority_range(1, 5)] == ["top", "high", "mid"]
    assert [e.uid for e in store.by_priority_range()] == ["top", "high", "mid", "low"]
    assert [e.uid for e in store.high_priority()] == ["top", "high"]


def test_by_status_case_insensitive():
    store = EventStore([
        ev("a", datetime(2024, 1, 1), status=EventStatus.CONFIRMED),
        ev("b", datetime(2024, 1, 2), status=EventStatus.TENTATIVE),
        ev("c", datetime(2024, 1, 3)),
    ])

    assert [e.uid for e in store.by_status("confirmed")] == ["a"]
    assert [e.uid for e in store.by_status(EventStatus.TENTATIVE)] == ["b"]
    assert store.by_status("cancelled") == []


# ==================== Conflicts ====================

def test_conflict_example(abc_store):
    a, b, c = (abc_store.get(uid) for uid in "ABC")

    assert abc_store.conflicts(a) == [b]
    assert abc_store.conflicts(b) == [a]
    assert abc_store.conflicts(c) == []
    assert abc_store.has_conflict(a)
    assert not abc_store.has_conflict(c)


def test_touching_events_do_not_conflict():
    store = EventStore([ev("a", datetime(2024, 1, 1, 9), hours=1), ev("b", datetime(2024, 1, 1, 10))])

    assert store.conflicts(store.get("a")) == []


def test_conflicts_ignore_events_without_end(abc_store):
    abc_store.insert(ev("open", datetime(2024, 5, 6, 10, 15), hours=None))

    assert [e.uid for e in abc_store.conflicts(abc_store.get("A"))] == ["B"]
    assert abc_store.conflicts(abc_store.get("open")) == []


def test_conflicts_for_unstored_event_in_store_order(abc_store):
    wide = ev("wide", datetime(2024, 5, 6, 9), hours=4)

    assert [e.uid for e in abc_store.conflicts(wide)] == ["A", "B", "C"]


def test_conflict_index_follows_mutations(abc_store):
    a = abc_store.get("A")
    assert abc_store.conflicts(a)

    abc_store.remove(["B"])
    assert abc_store.conflicts(a) == []

    abc_store.insert(ev("D", datetime(2024, 5, 6, 10, 45)))
    assert [e.uid for e in abc_store.conflicts(a)] == ["D"]

    d = abc_store.get("D")
    d.start = datetime(2024, 5, 6, 15)
    d.end = datetime(2024, 5, 6, 16)
    assert abc_store.conflicts(a) == []


def test_conflicts_see_in_place_edits_of_returned_events():
    store = EventStore([
        ev("A", datetime(2024, 5, 6, 10)),
        ev("B", datetime(2024, 5, 6, 12)),
    ])
    a = store.get("A")
    assert store.conflicts(a) == []

    b = store.by_range(datetime(2024, 5, 6), datetime(2024, 5, 7))[1]
    b.start = datetime(2024, 5, 6, 10, 30)

    assert [e.uid for e in store.conflicts(a)] == ["B"]
    assert [e.uid for e in store.events_at(datetime(2024, 5, 6, 10, 45))] == ["A", "B"]


def test_events_at(abc_store):
    assert [e.uid for e in abc_store.events_at(datetime(2024, 5, 6, 10, 45))] == ["A", "B"]
    assert [e.uid for e in abc_store.events_at(datetime(2024, 5, 6, 11, 0))] == ["B"]
    assert abc_store.events_at(datetime(2024, 5, 6, 13, 0)) == []
