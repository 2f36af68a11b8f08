"""
EventCalendar: one object holding a store, a manager and the configuration.

Loads events from ICS or JSON, answers expanded range and month queries
(recurring events become their occurrences), and builds month grids using
the configured first weekday.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from typing import Optional, Union

from .config import Config
from .debug import debug_print
from .event_manager import EventManager
from .event_model import Event, RecurrenceRule
from .event_store import EventStore, MonthGrid, month_bounds
from .ics_parser import parse_ics
from .json_parser import parse_json
from .recurrence import expand_occurrences, format_rule, parse_rule, resolve_rule
from .timezone_utils import as_datetime, comparable


def _debug_print(message: str) -> None:
    debug_print("CALENDAR", message)


class EventCalendar:
    """
    Facade over EventStore, EventManager and the format adapters.

    Creating an EventCalendar applies the configuration (timezone and debug
    output), which is process-wide.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config if config is not None else Config()
        self.config.apply()
        self.store = EventStore()
        self.manager = EventManager(
            self.store,
            uid_suffix=self.config.identity.uid_suffix,
            enforce_unique_uids=self.config.identity.enforce_unique_uids,
        )

    # ==================== Loading ====================

    def load_ics(self, text: Union[str, bytes]) -> list[Event]:
        """Parse ICS text and add its events. Returns the added events."""
        events = parse_ics(text, uid_suffix=self.config.identity.uid_suffix)
        self.store.insert(events)
        return events

    def load_json(self, data) -> list[Event]:
        """Parse JSON text or records and add the events. Returns the added events."""
        events = parse_json(data, uid_suffix=self.config.identity.uid_suffix)
        self.store.insert(events)
        return events

    def add_events(self, events: Iterable[Union[Event, Mapping]]) -> int:
        """Add Events or records without uniqueness checks. Returns the number added."""
        return self.store.insert([self.manager.normalize(e) for e in events])

    def clear(self):
        self.store.clear()

    # ==================== Expansion ====================

    def expand(
        self,
        event: Event,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[Event]:
        """Occurrences of ``event``, capped at the configured max_occurrences."""
        return expand_occurrences(
            event, range_start, range_end,
            max_occurrences=self.config.recurrence.max_occurrences,
        )

    def expand_event(
        self,
        uid: str,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[Event]:
        """
        Occurrences of the stored event with this uid.

        Raises:
            NotFoundError: if the uid is unknown.
        """
        return self.expand(self.manager.require(uid), range_start, range_end)

    def all_events_expanded(
        self,
        range_start: Union[date, datetime],
        range_end: Union[date, datetime],
    ) -> list[Event]:
        """
        Every event touching [range_start, range_end], recurring ones expanded.

        A single event is kept when it starts no later than range_end and its
        end (or start, when it has none) is not before range_start.

        Returns:
            Events and Occurrences ascending by start.
        """
        lower = as_datetime(range_start)
        upper = as_datetime(range_end)

        results: list[Event] = []
        for event in self.store.all_events():
            rule = resolve_rule(event)
            if rule is not None and rule.freq:
                results.extend(self.expand(event, lower, upper))
            elif self._touches(event, lower, upper):
                results.append(event)

        results.sort(key=lambda e: comparable(e.start))
        _debug_print(f"Expanded {len(self.store)} events to {len(results)} in {lower} - {upper}")
        return results

    def month_expanded(self, year: int, month: int) -> list[Event]:
        """Expanded events for one month (1..12)."""
        first, last = month_bounds(year, month)
        return self.all_events_expanded(datetime.combine(first, time.min), datetime.combine(last, time.max))

    def month_grid(self, year: int, month: int, today: Optional[date] = None) -> MonthGrid:
        """Month grid starting on the configured first weekday."""
        return self.store.month_grid(year, month, today=today, first_weekday=self.config.grid.first_weekday)

    # ==================== Rules ====================

    @staticmethod
    def parse_rule(text: str) -> RecurrenceRule:
        return parse_rule(text)

    @staticmethod
    def format_rule(rule: RecurrenceRule) -> str:
        return format_rule(rule)

    # ==================== Helpers ====================

    @staticmethod
    def _touches(event: Event, lower: datetime, upper: datetime) -> bool:
        start = comparable(event.start)
        finish = comparable(event.end) if event.end is not None else start
        return start <= comparable(upper) and finish >= comparable(lower)
