"""
ICS adapter: iCalendar text to Events.

Line unfolding and backslash unescaping are done by the icalendar library;
this module only maps VEVENT properties onto the Event schema.
"""

from datetime import date, datetime, timedelta
from typing import Any, Optional

from icalendar import Calendar as ICalCalendar, vRecur
import pytz

from .debug import debug_print
from .errors import FormatError
from .event_manager import assign_unique_uids
from .event_model import Contact, Event, EventStatus, coerce_priority, coerce_rule


def _debug_print(message: str) -> None:
    debug_print("ICS", message)


def parse_icalendar(ical_text: str) -> list[ICalCalendar]:
    """
    Parse iCalendar text into icalendar.Calendar objects.

    Raises:
        FormatError: if the text is not iCalendar data.
    """
    try:
        calendars = ICalCalendar.from_ical(ical_text, multiple=True)
    except ValueError as e:
        raise FormatError(f"Invalid iCalendar data: {e}") from e
    if not calendars:
        raise FormatError("No calendar components found")
    return calendars


def parse_ics(text: str, uid_suffix: str = "eventcal") -> list[Event]:
    """
    Parse every VEVENT in ``text``.

    Events without DTSTART are dropped. Uids are unique within the returned
    list: missing ones are generated and repeats get a ``-<n>`` suffix.

    Args:
        text: iCalendar text (str or bytes)
        uid_suffix: Suffix for generated uids

    Returns:
        Events in document order; an empty list for blank text
    """
    if isinstance(text, bytes):
        text = text.decode('utf-8')
    if not text or not text.strip():
        return []

    events = []
    for calendar in parse_icalendar(text):
        for component in calendar.walk('VEVENT'):
            event = _event_from_component(component)
            if event is not None:
                events.append(event)

    _debug_print(f"Parsed {len(events)} events")
    return assign_unique_uids(events, uid_suffix)


def _event_from_component(component) -> Optional[Event]:
    if component.errors:
        _debug_print(f"Unreadable properties in VEVENT: {component.errors}")

    start_value = _date_value(component, 'DTSTART')
    if start_value is None:
        _debug_print(f"Dropping VEVENT without a usable DTSTART: {component.get('UID')}")
        return None

    start, is_all_day = _to_datetime(start_value)
    end = None
    end_value = _date_value(component, 'DTEND')
    if end_value is not None:
        end, _ = _to_datetime(end_value)
    else:
        duration = _date_value(component, 'DURATION')
        if isinstance(duration, timedelta):
            end = start + duration

    return Event(
        title=_text(component.get('SUMMARY')) or "Untitled",
        start=start,
        end=end,
        uid=_text(component.get('UID')),
        description=_text(component.get('DESCRIPTION')),
        location=_text(component.get('LOCATION')),
        categories=_categories(component.get('CATEGORIES')),
        color=_text(component.get('COLOR')) or None,
        priority=_priority(component.get('PRIORITY')),
        status=_status(component.get('STATUS')),
        is_all_day=is_all_day,
        attachments=[str(a) for a in _as_list(component.get('ATTACH'))],
        organizer=_contact(component.get('ORGANIZER')),
        attendees=[c for c in map(_contact, _as_list(component.get('ATTENDEE'))) if c],
        recurrence_rule=_rrule(component.get('RRULE')),
    )


def _date_value(component, name: str):
    """The ``.dt`` of a date property, or None when absent or unreadable."""
    prop = component.get(name)
    if prop is None:
        return None
    try:
        return prop.dt
    except (AttributeError, ValueError) as e:
        _debug_print(f"Ignoring {name}: {e}")
        return None


def _to_datetime(value) -> tuple[datetime, bool]:
    """
    Map a DTSTART/DTEND value to (datetime, is_all_day).

    Date-only values become local midnight. Values with a zone (UTC or TZID)
    become aware UTC; floating values stay naive.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(pytz.UTC), False
        return value, False
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day), True
    raise FormatError(f"Unsupported date value: {value!r}")


def _text(value: Any) -> str:
    return str(value) if value is not None else ""


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _categories(value: Any) -> list[str]:
    categories = []
    for item in _as_list(value):
        if hasattr(item, 'cats'):
            categories.extend(str(c) for c in item.cats)
        else:
            categories.extend(c.strip() for c in str(item).split(',') if c.strip())
    return categories


def _priority(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return coerce_priority(int(value))
    except (ValueError, FormatError) as e:
        _debug_print(f"Ignoring PRIORITY {value!r}: {e}")
        return None


def _status(value: Any) -> Optional[EventStatus]:
    if value is None:
        return None
    try:
        return EventStatus.coerce(str(value))
    except FormatError as e:
        _debug_print(f"Ignoring STATUS: {e}")
        return None


def _contact(value: Any) -> Optional[Contact]:
    if value is None:
        return None
    params = getattr(value, 'params', {})
    contact = Contact.coerce(str(value))
    if contact is None:
        return None
    contact.name = params.get('CN') or None
    contact.status = params.get('PARTSTAT') or None
    contact.role = params.get('ROLE') or None
    return contact


def _rrule(value: Any):
    """RRULE as a RecurrenceRule, or its raw text when the engine cannot read it."""
    values = _as_list(value)
    if not values:
        return None
    if len(values) > 1:
        _debug_print(f"Only the first of {len(values)} RRULE properties is used")
    rule = values[0]
    if isinstance(rule, vRecur):
        return coerce_rule(rule.to_ical().decode('utf-8'))
    # Values icalendar could not parse keep their raw text
    return coerce_rule(str(rule))
