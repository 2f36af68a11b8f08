"""
Canonical event record shared by every part of eventcal.

The ICS and JSON adapters, the Event Manager and the Recurrence Engine all
produce or consume ``Event``. Loosely-typed input payloads are turned into an
``Event`` once, by ``Event.from_mapping``, which resolves field aliases from an
explicit ordered list of candidate keys per semantic field.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional, Union

from dateutil import parser as date_parser

from .debug import debug_print
from .errors import FormatError, ValidationError
from .timezone_utils import as_datetime, comparable


def _debug_print(message: str) -> None:
    debug_print("MODEL", message)


WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")  # index == date.weekday()
FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")


class EventStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    TENTATIVE = "TENTATIVE"
    CANCELLED = "CANCELLED"

    @classmethod
    def coerce(cls, value: Any) -> Optional['EventStatus']:
        """Case-insensitive lookup; None and empty strings mean no status."""
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise FormatError(f"Unknown event status: {value!r}") from None


@dataclass
class Contact:
    """Organizer or attendee of an event."""
    email: str
    name: Optional[str] = None
    status: Optional[str] = None  # PARTSTAT, e.g. ACCEPTED
    role: Optional[str] = None  # e.g. REQ-PARTICIPANT

    @classmethod
    def coerce(cls, value: Any) -> Optional['Contact']:
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return replace(value)
        if isinstance(value, str):
            return cls(email=strip_mailto(value))
        if isinstance(value, Mapping):
            email = value.get('email') or value.get('address') or ''
            return cls(
                email=strip_mailto(str(email)),
                name=value.get('name') or value.get('cn'),
                status=_upper_or_none(value.get('status') or value.get('partstat')),
                role=_upper_or_none(value.get('role')),
            )
        raise FormatError(f"Cannot build a contact from {type(value).__name__}")


@dataclass
class RecurrenceRule:
    """
    Structured RRULE.

    ``extras`` keeps keys the engine does not understand, lower-cased, with
    their values verbatim, so they survive a parse/format round trip.
    """
    freq: Optional[str] = None  # DAILY, WEEKLY, MONTHLY, YEARLY
    interval: int = 1
    count: Optional[int] = None
    until: Optional[datetime] = None  # Inclusive upper bound
    by_day: list[str] = field(default_factory=list)  # MO..SU
    by_month_day: list[int] = field(default_factory=list)  # 1..31, -31..-1
    by_month: list[int] = field(default_factory=list)  # 1..12
    wkst: Optional[str] = None
    extras: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping) -> 'RecurrenceRule':
        """Build a rule from a plain record (camelCase or snake_case keys)."""
        def pick(*keys):
            for key in keys:
                if data.get(key) not in (None, ""):
                    return data[key]
            return None

        freq = pick('freq', 'frequency')
        until = pick('until')
        try:
            return cls(
                freq=str(freq).upper() if freq else None,
                interval=int(pick('interval') or 1),
                count=int(pick('count')) if pick('count') is not None else None,
                until=coerce_timestamp(until) if until is not None else None,
                by_day=[str(d).upper() for d in _as_list(pick('by_day', 'byDay'))],
                by_month_day=[int(d) for d in _as_list(pick('by_month_day', 'byMonthDay'))],
                by_month=[int(m) for m in _as_list(pick('by_month', 'byMonth'))],
                wkst=str(pick('wkst')).upper() if pick('wkst') else None,
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, FormatError):
                raise
            raise FormatError(f"Invalid recurrence record: {e}") from e


# ==================== Field Aliases ====================
# Ordered candidate keys per semantic field; the first present key wins.

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    'title': ('title', 'summary', 'name'),
    'start': ('start', 'startDate', 'startTime', 'start_date', 'start_time', 'dtstart'),
    'end': ('end', 'endDate', 'endTime', 'end_date', 'end_time', 'dtend'),
    'uid': ('uid', 'id'),
    'description': ('description', 'desc'),
    'location': ('location', 'place'),
    'categories': ('categories', 'category', 'tags'),
    'color': ('color', 'colour'),
    'priority': ('priority',),
    'status': ('status',),
    'is_all_day': ('is_all_day', 'isAllDay', 'allDay', 'all_day'),
    'attachments': ('attachments', 'attach'),
    'organizer': ('organizer',),
    'attendees': ('attendees',),
    'recurrence_rule': ('recurrence_rule', 'recurrenceRule', 'recurrence', 'rrule'),
}


def resolve_alias(data: Mapping, field_name: str) -> Any:
    """Value of the first candidate key that is present and not empty."""
    for key in FIELD_ALIASES[field_name]:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def field_for_key(key: str) -> Optional[str]:
    """Map an input key (canonical name or alias) to its Event field name."""
    for field_name, aliases in FIELD_ALIASES.items():
        if key == field_name or key in aliases:
            return field_name
    return None


# ==================== Value Coercion ====================

def coerce_timestamp(value: Any) -> datetime:
    """
    Turn a date, datetime or date text into a datetime.

    Aware values are normalized to UTC, naive values stay local wall-clock,
    and dates become midnight.

    Raises:
        FormatError: text that cannot be parsed or an unsupported type.
    """
    if isinstance(value, (date, datetime)):
        return as_datetime(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise FormatError("Empty date text")
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(text)
            except (ValueError, OverflowError) as e:
                raise FormatError(f"Invalid date: {value!r}") from e
        return as_datetime(parsed)
    raise FormatError(f"Unsupported timestamp type: {type(value).__name__}")


def coerce_priority(value: Any) -> Optional[int]:
    """Priorities are 1 (highest) to 9; 0 means undefined as in iCalendar."""
    if value is None or value == "":
        return None
    try:
        priority = int(value)
    except (TypeError, ValueError):
        raise FormatError(f"Invalid priority: {value!r}") from None
    if priority == 0:
        return None
    if not 1 <= priority <= 9:
        raise FormatError(f"Priority must be between 1 and 9, got {priority}")
    return priority


def coerce_categories(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [c.strip() for c in value.split(',') if c.strip()]
    return [str(c) for c in _as_list(value)]


def coerce_rule(value: Any) -> Union['RecurrenceRule', str, None]:
    """
    Accept a rule object, a rule mapping or rule text.

    Malformed text is kept verbatim: expansion treats it as a non-recurring
    event instead of failing at construction.
    """
    if value is None or value == "":
        return None
    if isinstance(value, RecurrenceRule):
        return replace(value, by_day=list(value.by_day), by_month_day=list(value.by_month_day),
                       by_month=list(value.by_month), extras=dict(value.extras))
    if isinstance(value, Mapping):
        return RecurrenceRule.from_mapping(value)
    if isinstance(value, str):
        from .recurrence import parse_rule
        try:
            return parse_rule(value)
        except FormatError as e:
            _debug_print(f"Keeping unparsable rule text {value!r}: {e}")
            return value
    raise FormatError(f"Unsupported recurrence rule type: {type(value).__name__}")


def strip_mailto(address: str) -> str:
    if address.lower().startswith('mailto:'):
        return address[len('mailto:'):]
    return address


def _upper_or_none(value: Any) -> Optional[str]:
    return str(value).upper() if value else None


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (str, bytes, Mapping)):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


COERCERS: dict[str, Callable[[Any], Any]] = {
    'title': lambda v: str(v) if v is not None else "",
    'start': coerce_timestamp,
    'end': lambda v: coerce_timestamp(v) if v not in (None, "") else None,
    'description': lambda v: str(v) if v is not None else "",
    'location': lambda v: str(v) if v is not None else "",
    'categories': coerce_categories,
    'color': lambda v: str(v) if v else None,
    'priority': coerce_priority,
    'status': EventStatus.coerce,
    'is_all_day': bool,
    'attachments': lambda v: [str(a) for a in _as_list(v)],
    'organizer': Contact.coerce,
    'attendees': lambda v: [Contact.coerce(a) for a in _as_list(v) if a],
    'recurrence_rule': coerce_rule,
}


# ==================== Event ====================

@dataclass
class Event:
    """
    A calendar event.

    ``end`` may be None. The invariant ``end >= start`` is checked by
    ``EventManager.validate`` and nowhere else.
    """
    title: str
    start: datetime
    end: Optional[datetime] = None
    uid: str = ""
    description: str = ""
    location: str = ""
    categories: list[str] = field(default_factory=list)
    color: Optional[str] = None
    priority: Optional[int] = None  # 1 (highest) .. 9
    status: Optional[EventStatus] = None
    is_all_day: bool = False
    attachments: list[str] = field(default_factory=list)
    organizer: Optional[Contact] = None
    attendees: list[Contact] = field(default_factory=list)
    recurrence_rule: Union[RecurrenceRule, str, None] = None

    @property
    def duration(self) -> Optional[timedelta]:
        """Length of the event, or None when it has no end."""
        if self.end is None:
            return None
        if (self.start.tzinfo is None) != (self.end.tzinfo is None):
            return comparable(self.end) - comparable(self.start)
        return self.end - self.start

    @property
    def is_recurring(self) -> bool:
        """True if the event carries a recurrence rule."""
        return self.recurrence_rule is not None

    def copy(self, **changes) -> 'Event':
        """Independent copy: list fields and contacts are not shared."""
        clone = replace(
            self,
            categories=list(self.categories),
            attachments=list(self.attachments),
            organizer=replace(self.organizer) if self.organizer else None,
            attendees=[replace(a) for a in self.attendees],
            recurrence_rule=coerce_rule(self.recurrence_rule),
        )
        for name, value in changes.items():
            setattr(clone, name, value)
        return clone

    @classmethod
    def from_mapping(
        cls,
        data: Mapping,
        uid_factory: Optional[Callable[[], str]] = None,
        default_title: str = "Untitled",
    ) -> 'Event':
        """
        Normalize a loosely-typed record into an Event.

        Args:
            data: Record using canonical field names or any alias from FIELD_ALIASES
            uid_factory: Called when the record has no uid
            default_title: Used when no title alias is present

        Raises:
            ValidationError: the record has no start
            FormatError: a value cannot be coerced
        """
        values = {name: resolve_alias(data, name) for name in FIELD_ALIASES}
        if values['start'] is None:
            raise ValidationError("Event must have a start date")
        if values['title'] is None:
            values['title'] = default_title
        uid = values.pop('uid')
        kwargs = {name: COERCERS[name](value) for name, value in values.items() if value is not None}
        if uid is None and uid_factory is not None:
            uid = uid_factory()
        return cls(uid=str(uid) if uid is not None else "", **kwargs)

    def __repr__(self):
        return f"{type(self).__name__}(uid={self.uid!r}, title={self.title!r}, start={self.start})"


EVENT_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(Event))


@dataclass(repr=False)
class Occurrence(Event):
    """
    One materialization of a recurring event on a specific date.

    Never stored; the Recurrence Engine recomputes occurrences per query.
    ``recurrence_rule`` is carried for display only and is never re-expanded.
    """
    recurring_event_id: str = ""
    recurrence_date: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        return True
