"""
JSON adapter: loosely-shaped event records to Events.
"""

import json
from collections.abc import Mapping
from typing import Any, Union

from .debug import debug_print
from .errors import FormatError, ValidationError
from .event_manager import assign_unique_uids
from .event_model import Event, resolve_alias


def _debug_print(message: str) -> None:
    debug_print("JSON", message)


def parse_json(data: Union[str, bytes, Mapping, list], uid_suffix: str = "eventcal") -> list[Event]:
    """
    Normalize JSON event records into Events.

    Args:
        data: JSON text, one record, or a list of records. Keys may use any
            alias known to Event.from_mapping (summary, startDate, tags, ...).
        uid_suffix: Suffix for generated uids

    Returns:
        Events in input order. Records without a start, or with a field
        value that cannot be coerced, are dropped.

    Raises:
        FormatError: unparsable JSON text or a record that is not an object
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FormatError(f"Invalid JSON format: {e}") from e

    records = data if isinstance(data, list) else [data]

    events = []
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise FormatError(f"Event record {index} must be an object, got {type(record).__name__}")
        try:
            events.append(Event.from_mapping(record))
        except (ValidationError, FormatError) as e:
            _debug_print(f"Dropping record {index}: {e}")

    _debug_print(f"Parsed {len(events)} of {len(records)} records")
    return assign_unique_uids(events, uid_suffix)


def is_valid_event(record: Any) -> bool:
    """Quick check: a mapping with some title alias and some start alias."""
    if not isinstance(record, Mapping):
        return False
    return bool(resolve_alias(record, 'title')) and bool(resolve_alias(record, 'start'))
