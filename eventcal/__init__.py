"""
eventcal - in-memory calendar event engine

This package provides:
- Event model and field normalization (event_model.py)
- Recurrence rule parsing, formatting and expansion (recurrence.py)
- Event store with range, month and conflict queries (event_store.py)
- CRUD and validation (event_manager.py)
- ICS and JSON adapters (ics_parser.py, json_parser.py)
- A facade tying them together (event_calendar.py)
- Configuration from TOML (config.py)
"""

from .config import Config
from .errors import (
    CalendarError, FormatError, ValidationError, NotFoundError, ArgumentError,
)
from .event_model import Event, Occurrence, RecurrenceRule, Contact, EventStatus
from .event_store import EventStore, MonthGrid, GridCell
from .event_manager import EventManager, ValidationResult
from .event_calendar import EventCalendar
from .recurrence import parse_rule, format_rule, expand_occurrences
from .ics_parser import parse_ics
from .json_parser import parse_json

__all__ = [
    'Config',
    'CalendarError',
    'FormatError',
    'ValidationError',
    'NotFoundError',
    'ArgumentError',
    'Event',
    'Occurrence',
    'RecurrenceRule',
    'Contact',
    'EventStatus',
    'EventStore',
    'MonthGrid',
    'GridCell',
    'EventManager',
    'ValidationResult',
    'EventCalendar',
    'parse_rule',
    'format_rule',
    'expand_occurrences',
    'parse_ics',
    'parse_json',
]
