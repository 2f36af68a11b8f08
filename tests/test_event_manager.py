"""Tests for EventManager CRUD, validation and identity handling."""

import re
from datetime import datetime, timedelta

import pytest

from eventcal.errors import ArgumentError, FormatError, NotFoundError, ValidationError
from eventcal.event_manager import EventManager, assign_unique_uids, make_uid
from eventcal.event_model import Event, EventStatus, RecurrenceRule
from eventcal.event_store import EventStore


@pytest.fixture
def manager():
    return EventManager(EventStore(), uid_suffix="test")


@pytest.fixture
def meeting(manager):
    return manager.create({
        "title": "Planning",
        "start": "2024-06-03T10:00:00",
        "end": "2024-06-03T11:30:00",
        "uid": "planning@test",
        "tags": "work, planning",
        "priority": 2,
    })


# ==================== Identity ====================

def test_generated_uid_shape(manager):
    uid = manager.generate_uid()

    assert re.fullmatch(r"[0-9a-z]+-[0-9a-f]{8}@test", uid)
    assert manager.generate_uid() != uid


def test_make_uid_default_suffix():
    assert make_uid().endswith("@eventcal")


def test_assign_unique_uids():
    events = [
        Event(title="a", start=datetime(2024, 1, 1), uid="x"),
        Event(title="b", start=datetime(2024, 1, 1), uid="x"),
        Event(title="c", start=datetime(2024, 1, 1)),
        Event(title="d", start=datetime(2024, 1, 1), uid="x"),
    ]

    uids = [e.uid for e in assign_unique_uids(events, "test")]

    assert uids[0] == "x"
    assert uids[1] == "x-1"
    assert uids[2].endswith("@test")
    assert uids[3] == "x-2"


def test_require_raises_for_unknown_uid(manager):
    with pytest.raises(NotFoundError, match="missing"):
        manager.require("missing")


# ==================== Validation ====================

def test_validate_accepts_good_record(manager):
    result = manager.validate({"summary": "Call", "startDate": "2024-06-03 09:00"})

    assert result.valid
    assert result.errors == []
    assert bool(result)


@pytest.mark.parametrize("record, error", [
    ({"start": "2024-06-03"}, "Event must have a title"),
    ({"title": "   ", "start": "2024-06-03"}, "Event must have a title"),
    ({"title": "No start"}, "Event must have a start date"),
    ({"title": "Bad", "start": "not a date"}, "Invalid start date"),
    ({"title": "Bad", "start": "2024-06-03", "end": "soon"}, "Invalid end date"),
    ({"title": "Back", "start": "2024-06-03T10:00", "end": "2024-06-03T09:00"},
     "End date must not be before start date"),
])
def test_validate_reports_errors(manager, record, error):
    result = manager.validate(record)

    assert not result.valid
    assert error in result.errors


def test_validate_collects_several_errors(manager):
    result = manager.validate({})

    assert result.errors == ["Event must have a title", "Event must have a start date"]


def test_validate_non_mapping(manager):
    result = manager.validate(["title", "start"])

    assert not result.valid
    assert result.errors == ["Event must be a mapping or an Event"]


def test_validate_event_instance(manager):
    event = Event(title="x", start=datetime(2024, 1, 2), end=datetime(2024, 1, 1))

    assert manager.validate(event).errors == ["End date must not be before start date"]


# ==================== Create ====================

def test_create_normalizes_record(meeting, manager):
    assert meeting.uid == "planning@test"
    assert meeting.start == datetime(2024, 6, 3, 10, 0)
    assert meeting.duration == timedelta(hours=1, minutes=30)
    assert meeting.categories == ["work", "planning"]
    assert meeting.priority == 2
    assert manager.get("planning@test") is meeting
    assert manager.count() == 1


def test_create_generates_uid(manager):
    event = manager.create({"name": "Quick", "startTime": "2024-06-03T12:00:00"})

    assert event.uid.endswith("@test")
    assert manager.exists(event.uid)


def test_create_from_event_copies_it(manager):
    original = Event(title="Copy me", start=datetime(2024, 6, 3, 8), categories=["x"])

    stored = manager.create(original)

    assert stored is not original
    assert stored.uid
    assert original.uid == ""
    stored.categories.append("y")
    assert original.categories == ["x"]


def test_create_rejects_invalid(manager):
    with pytest.raises(ValidationError, match="title") as info:
        manager.create({"start": "2024-06-03"})
    assert info.value.errors == ["Event must have a title"]
    assert manager.count() == 0


def test_create_rejects_bad_field_values(manager):
    with pytest.raises(FormatError, match="Priority"):
        manager.create({"title": "x", "start": "2024-06-03", "priority": 12})


def test_create_rejects_duplicate_uid(meeting, manager):
    with pytest.raises(ValidationError, match="already exists"):
        manager.create({"title": "Again", "start": "2024-06-04", "uid": meeting.uid})


def test_create_allows_duplicate_uid_when_not_enforced():
    manager = EventManager(EventStore(), enforce_unique_uids=False)
    manager.create({"title": "a", "start": "2024-06-04", "uid": "same"})
    manager.create({"title": "b", "start": "2024-06-05", "uid": "same"})

    assert manager.count() == 2


def test_create_with_recurrence_text(manager):
    event = manager.create({"title": "Gym", "start": "2024-06-03T07:00", "rrule": "FREQ=WEEKLY;BYDAY=MO"})

    assert isinstance(event.recurrence_rule, RecurrenceRule)
    assert event.recurrence_rule.by_day == ["MO"]


# ==================== Update ====================

def test_update_merges_aliases_in_place(meeting, manager):
    updated = manager.update(meeting.uid, {"summary": "Planning v2", "place": "Room 4", "status": "tentative"})

    assert updated is meeting
    assert meeting.title == "Planning v2"
    assert meeting.location == "Room 4"
    assert meeting.status is EventStatus.TENTATIVE


def test_update_ignores_uid(meeting, manager):
    manager.update(meeting.uid, {"uid": "hijacked", "title": "Same identity"})

    assert meeting.uid == "planning@test"
    assert manager.get("hijacked") is None


def test_update_unknown_uid_returns_none(manager):
    assert manager.update("missing", {"title": "x"}) is None


def test_update_argument_errors(meeting, manager):
    with pytest.raises(ArgumentError, match="uid"):
        manager.update("", {"title": "x"})
    with pytest.raises(ArgumentError, match="mapping"):
        manager.update(meeting.uid, [("title", "x")])
    with pytest.raises(ArgumentError, match="Unknown event field"):
        manager.update(meeting.uid, {"colour_scheme": "dark"})
    with pytest.raises(ValidationError):
        manager.update(meeting.uid, {"start": None})


def test_update_refreshes_conflicts(meeting, manager):
    other = manager.create({"title": "Other", "start": "2024-06-03T13:00", "end": "2024-06-03T14:00"})
    assert manager.store.conflicts(other) == []

    manager.update(meeting.uid, {"end": "2024-06-03T13:30"})

    assert manager.store.conflicts(other) == [meeting]


# ==================== Delete ====================

def test_delete(meeting, manager):
    assert manager.delete(meeting.uid) is True
    assert manager.delete(meeting.uid) is False
    assert manager.count() == 0


def test_delete_many(manager):
    for n in range(4):
        manager.create({"title": f"e{n}", "start": "2024-06-03", "uid": f"e{n}"})

    assert manager.delete_many(["e0", "e2", "nope"]) == 2
    assert manager.count() == 2

    with pytest.raises(ArgumentError):
        manager.delete_many("e1")
    with pytest.raises(ArgumentError):
        manager.delete_many(5)


# ==================== Duplicate / move ====================

def test_duplicate(meeting, manager):
    clone = manager.duplicate(meeting.uid, {"title": "Planning (copy)", "start": "2024-06-10T10:00"})

    assert clone.uid != meeting.uid
    assert clone.uid.endswith("@test")
    assert clone.title == "Planning (copy)"
    assert clone.start == datetime(2024, 6, 10, 10, 0)
    assert clone.categories == meeting.categories
    assert clone.categories is not meeting.categories
    assert manager.count() == 2


def test_duplicate_missing_returns_none(manager):
    assert manager.duplicate("missing") is None


def test_move_keeps_duration(meeting, manager):
    moved = manager.move(meeting.uid, datetime(2024, 6, 4, 15, 0))

    assert moved.start == datetime(2024, 6, 4, 15, 0)
    assert moved.end == datetime(2024, 6, 4, 16, 30)


def test_move_without_duration_clears_end(meeting, manager):
    moved = manager.move(meeting.uid, "2024-06-04T15:00:00", keep_duration=False)

    assert moved.start == datetime(2024, 6, 4, 15, 0)
    assert moved.end is None


def test_move_event_without_end(manager):
    event = manager.create({"title": "Reminder", "start": "2024-06-03T09:00"})

    moved = manager.move(event.uid, datetime(2024, 6, 5, 9, 0))

    assert moved.end is None


def test_move_missing_returns_none(manager):
    assert manager.move("missing", datetime(2024, 1, 1)) is None


# ==================== Bulk ====================

def test_replace_all(meeting, manager):
    count = manager.replace_all([
        {"title": "One", "start": "2024-07-01"},
        Event(title="Two", start=datetime(2024, 7, 2), uid="two"),
    ])

    assert count == 2
    assert not manager.exists(meeting.uid)
    assert manager.exists("two")
    assert [e.title for e in manager.find(lambda e: e.start.month == 7)] == ["One", "Two"]
