"""
In-memory event store for eventcal.

Holds Events in insertion order and answers date, range, month, text,
category, priority and status queries plus conflict detection. Every query
returns a new list; changing that list never changes the store.

The store has a single owner and does no locking. It does not deduplicate
uids: bulk loads from the adapters are kept as given, and uid lookups return
the first match.
"""

import calendar
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Union

from .debug import debug_print
from .errors import ArgumentError
from .event_model import Event, EventStatus
from .interval_tree import IntervalTree
from .timezone_utils import as_datetime, comparable, local_date, local_today


def _debug_print(message: str) -> None:
    debug_print("STORE", message)


_Date = date


# ==================== Grid Types ====================

@dataclass
class GridCell:
    """One cell of a month grid. Leading blanks have no day."""
    day: Optional[int] = None
    date: Optional[_Date] = None
    events: list[Event] = field(default_factory=list)
    is_today: bool = False

    @property
    def is_blank(self) -> bool:
        return self.day is None


@dataclass
class MonthGrid:
    """Seven-column month layout: leading blanks, then one cell per day."""
    year: int
    month: int  # 1..12
    cells: list[GridCell]
    total_events: int
    leading_blanks: int = 0


# ==================== ISO Weeks ====================

def week_number(day: Union[date, datetime]) -> int:
    """
    ISO-8601 week number (1..53).

    The date is shifted to the Thursday of its Monday-based week; the week
    number counts whole weeks from the first Thursday of that Thursday's year.
    """
    thursday = _week_thursday(local_date(day))
    jan1 = date(thursday.year, 1, 1)
    first_thursday = jan1 + timedelta(days=(3 - jan1.weekday()) % 7)
    return 1 + (thursday - first_thursday).days // 7


def week_year(day: Union[date, datetime]) -> int:
    """ISO-8601 week-year: the calendar year of the week's Thursday."""
    return _week_thursday(local_date(day)).year


def _week_thursday(day: date) -> date:
    return day + timedelta(days=3 - day.weekday())


# ==================== Store ====================

class EventStore:
    """Insertion-ordered collection of Events with query operations."""

    def __init__(self, events: Optional[Iterable[Event]] = None):
        self._events: list[Event] = []
        if events is not None:
            self.insert(events)

    # ==================== Storage ====================

    def insert(self, events: Union[Event, Iterable[Event]]) -> int:
        """
        Append one Event or an iterable of Events.

        Returns:
            Number of events added.

        Raises:
            ArgumentError: if any item is not an Event.
        """
        if isinstance(events, Event):
            batch = [events]
        elif isinstance(events, (str, bytes)) or not isinstance(events, Iterable):
            raise ArgumentError(f"Expected an Event or an iterable of Events, got {type(events).__name__}")
        else:
            batch = list(events)

        for event in batch:
            if not isinstance(event, Event):
                raise ArgumentError(f"Expected Event, got {type(event).__name__}")

        self._events.extend(batch)
        _debug_print(f"insert: {len(batch)} events, {len(self._events)} total")
        return len(batch)

    def clear(self):
        """Remove all events."""
        self._events = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))

    def __contains__(self, uid: str) -> bool:
        return any(e.uid == uid for e in self._events)

    def all_events(self) -> list[Event]:
        """All events sorted by start."""
        return self._sorted(self._events)

    def get(self, uid: str) -> Optional[Event]:
        """First event with this uid, or None."""
        for event in self._events:
            if event.uid == uid:
                return event
        return None

    def remove(self, uids: Iterable[str]) -> int:
        """Remove every event whose uid is in ``uids``. Returns the number removed."""
        targets = set(uids)
        before = len(self._events)
        self._events = [e for e in self._events if e.uid not in targets]
        return before - len(self._events)

    def find(self, predicate: Callable[[Event], bool]) -> list[Event]:
        """Events for which ``predicate`` is true, in store order."""
        return [e for e in self._events if predicate(e)]

    # ==================== Date Queries ====================

    def by_date(self, day: Union[date, datetime]) -> list[Event]:
        """Events starting on the same calendar day; time of day is ignored."""
        target = local_date(day)
        return [e for e in self._events if local_date(e.start) == target]

    def by_range(self, start: Union[date, datetime], end: Union[date, datetime]) -> list[Event]:
        """
        Events whose start lies in [start, end].

        Returns:
            Events ascending by start; ties keep store order.
        """
        lower = comparable(as_datetime(start))
        upper = comparable(as_datetime(end))
        hits = [e for e in self._events if lower <= comparable(e.start) <= upper]
        return self._sorted(hits)

    def by_month(self, year: int, month: int) -> list[Event]:
        """Events starting in the given month (1..12), ascending by start."""
        first, last = month_bounds(year, month)
        return self.by_range(datetime.combine(first, time.min), datetime.combine(last, time.max))

    def month_grid(
        self,
        year: int,
        month: int,
        today: Optional[date] = None,
        first_weekday: int = 6,
    ) -> MonthGrid:
        """
        Build the grid for one month.

        Args:
            year: Year
            month: Month (1..12)
            today: Day to flag as today (defaults to the local current date)
            first_weekday: Weekday of the first column (0=Monday, 6=Sunday)

        Returns:
            MonthGrid with ``(weekday of day 1 - first_weekday) % 7`` leading
            blank cells and one cell per day; no trailing padding.
        """
        first, last = month_bounds(year, month)
        if today is None:
            today = local_today()

        month_events = self.by_month(year, month)
        per_day: dict[int, list[Event]] = {}
        for event in month_events:
            per_day.setdefault(local_date(event.start).day, []).append(event)

        leading = (first.weekday() - first_weekday) % 7
        cells = [GridCell() for _ in range(leading)]
        for day in range(1, last.day + 1):
            cell_date = date(year, month, day)
            cells.append(GridCell(
                day=day,
                date=cell_date,
                events=per_day.get(day, []),
                is_today=cell_date == today,
            ))

        return MonthGrid(
            year=year,
            month=month,
            cells=cells,
            total_events=len(month_events),
            leading_blanks=leading,
        )

    # ==================== Text / Attribute Queries ====================

    def search(self, query: str) -> list[Event]:
        """Case-insensitive substring match on title, description or location."""
        needle = query.lower()
        return [
            e for e in self._events
            if needle in (e.title or '').lower()
            or needle in (e.description or '').lower()
            or needle in (e.location or '').lower()
        ]

    def filter_by_category(self, categories: Union[str, Iterable[str]]) -> list[Event]:
        """Events carrying any of the given categories (case-insensitive)."""
        if isinstance(categories, str):
            categories = [categories]
        elif not isinstance(categories, Iterable):
            raise ArgumentError(f"Expected a category or an iterable of categories, got {type(categories).__name__}")
        wanted = {c.lower() for c in categories}
        return [e for e in self._events if any(c.lower() in wanted for c in e.categories)]

    def all_categories(self) -> list[str]:
        """Every category in use, deduplicated and sorted."""
        return sorted({c for e in self._events for c in e.categories})

    def by_priority_range(self, min_priority: int = 1, max_priority: int = 9) -> list[Event]:
        """Events with min_priority <= priority <= max_priority, ascending by priority."""
        hits = [
            e for e in self._events
            if e.priority is not None and min_priority <= e.priority <= max_priority
        ]
        return sorted(hits, key=lambda e: e.priority)

    def high_priority(self) -> list[Event]:
        """Events with priority 1 to 3."""
        return self.by_priority_range(1, 3)

    def by_status(self, status: Union[str, EventStatus]) -> list[Event]:
        """Events whose status matches, case-insensitively."""
        wanted = status.value if isinstance(status, EventStatus) else str(status).upper()
        return [e for e in self._events if e.status is not None and e.status.value == wanted]

    # ==================== Conflicts ====================

    def conflicts(self, event: Event) -> list[Event]:
        """
        Other stored events overlapping ``event``.

        Both spans are half-open [start, end); ``a < d and b > c``. Stored
        events without an end never conflict, a query event without an end
        has no conflicts, and stored events sharing the query's uid are
        skipped.

        Returns:
            Conflicting events in store order.
        """
        if event.start is None or event.end is None:
            return []

        index = self._conflict_index()
        hits = index.overlapping(comparable(event.start), comparable(event.end))
        hits.sort(key=lambda hit: hit[0])
        return [stored for _, stored in hits if stored.uid != event.uid]

    def has_conflict(self, event: Event) -> bool:
        return bool(self.conflicts(event))

    def events_at(self, moment: datetime) -> list[Event]:
        """Events with an end whose [start, end) covers ``moment``, in store order."""
        hits = []
        self._conflict_index().find_containing(
            comparable(as_datetime(moment)), lambda node: hits.append(node.data))
        hits.sort(key=lambda hit: hit[0])
        return [stored for _, stored in hits]

    def _conflict_index(self) -> IntervalTree:
        # Built per query: stored events may have been edited in place
        return IntervalTree(
            (comparable(e.start), comparable(e.end), (position, e))
            for position, e in enumerate(self._events)
            if e.end is not None
        )

    # ==================== Helpers ====================

    @staticmethod
    def _sorted(events: Iterable[Event]) -> list[Event]:
        return sorted(events, key=lambda e: comparable(e.start))

    week_number = staticmethod(week_number)
    week_year = staticmethod(week_year)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month (1..12)."""
    if not 1 <= month <= 12:
        raise ArgumentError(f"Month must be 1..12, got {month}")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
