"""
CRUD operations for events, on top of the Event Store.

The manager owns validation and identity: it generates uids, refuses to
create events without a title or start, and never lets ``update`` change an
event's uid. Lookups by uid that find nothing return None/False/0 instead of
raising, since a missing identity is an expected CRUD condition.
"""

import time
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Union

from .debug import debug_print
from .errors import ArgumentError, FormatError, NotFoundError, ValidationError
from .event_model import (
    COERCERS, EVENT_FIELDS, Event,
    coerce_timestamp, field_for_key, resolve_alias,
)
from .event_store import EventStore
from .timezone_utils import comparable


def _debug_print(message: str) -> None:
    debug_print("MANAGER", message)


_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def make_uid(suffix: str = "eventcal") -> str:
    """New uid shaped ``<base36 ms timestamp>-<random>@<suffix>``."""
    timestamp = _base36(int(time.time() * 1000))
    return f"{timestamp}-{uuid.uuid4().hex[:8]}@{suffix}"


def assign_unique_uids(events: Iterable[Event], suffix: str = "eventcal") -> list[Event]:
    """
    Make uids unique across one batch, in place.

    Events without a uid get a generated one; a repeated uid gets a ``-<n>``
    suffix with the smallest n not yet taken.
    """
    batch = list(events)
    seen: set[str] = set()
    for event in batch:
        uid = event.uid or make_uid(suffix)
        if uid in seen:
            n = 1
            while f"{uid}-{n}" in seen:
                n += 1
            _debug_print(f"Repeated uid {uid!r} renamed to {uid}-{n}")
            uid = f"{uid}-{n}"
        seen.add(uid)
        event.uid = uid
    return batch


@dataclass
class ValidationResult:
    """Outcome of EventManager.validate."""
    valid: bool
    errors: list[str] = field(default_factory=list)

    def __bool__(self):
        return self.valid


class EventManager:
    """
    Create, update, delete, duplicate and move events held in an EventStore.
    """

    def __init__(
        self,
        store: EventStore,
        uid_suffix: str = "eventcal",
        enforce_unique_uids: bool = True,
    ):
        """
        Args:
            store: Store the manager operates on
            uid_suffix: Part after '@' in generated uids
            enforce_unique_uids: If True, create() rejects a uid already stored
        """
        self.store = store
        self.uid_suffix = uid_suffix
        self.enforce_unique_uids = enforce_unique_uids

    # ==================== Identity ====================

    def generate_uid(self) -> str:
        return make_uid(self.uid_suffix)

    def get(self, uid: str) -> Optional[Event]:
        """First stored event with this uid, or None."""
        return self.store.get(uid)

    def require(self, uid: str) -> Event:
        """
        Stored event with this uid.

        Raises:
            NotFoundError: if the uid is unknown.
        """
        event = self.store.get(uid)
        if event is None:
            raise NotFoundError(uid)
        return event

    def exists(self, uid: str) -> bool:
        return uid in self.store

    def count(self) -> int:
        return len(self.store)

    def find(self, predicate: Callable[[Event], bool]) -> list[Event]:
        return self.store.find(predicate)

    # ==================== Validation ====================

    def validate(self, data: Union[Mapping, Event, Any]) -> ValidationResult:
        """
        Check an event record without storing it.

        Checks that a title and a start are present, that start and end parse,
        and that end is not before start. Problems are reported, never raised.
        """
        if isinstance(data, Event):
            data = {name: getattr(data, name) for name in EVENT_FIELDS}
        if not isinstance(data, Mapping):
            return ValidationResult(False, ['Event must be a mapping or an Event'])

        errors = []
        title = resolve_alias(data, 'title')
        raw_start = resolve_alias(data, 'start')
        raw_end = resolve_alias(data, 'end')

        if title is None or not str(title).strip():
            errors.append('Event must have a title')
        if raw_start is None:
            errors.append('Event must have a start date')

        start = end = None
        if raw_start is not None:
            try:
                start = coerce_timestamp(raw_start)
            except FormatError:
                errors.append('Invalid start date')
        if raw_end is not None:
            try:
                end = coerce_timestamp(raw_end)
            except FormatError:
                errors.append('Invalid end date')

        if start is not None and end is not None and comparable(end) < comparable(start):
            errors.append('End date must not be before start date')

        return ValidationResult(not errors, errors)

    # ==================== CRUD Operations ====================

    def create(self, data: Union[Mapping, Event]) -> Event:
        """
        Validate, normalize and store a new event.

        Args:
            data: An Event, or a record using Event field names or aliases

        Returns:
            The stored Event, with a generated uid if none was given

        Raises:
            ValidationError: missing title/start, bad dates, end before start,
                or (when enforced) a uid that is already stored
            FormatError: a field value that cannot be coerced
        """
        result = self.validate(data)
        if not result.valid:
            raise ValidationError(result.errors[0], result.errors)

        event = self.normalize(data)
        if self.enforce_unique_uids and event.uid in self.store:
            raise ValidationError(f"An event with uid {event.uid!r} already exists")

        self.store.insert(event)
        _debug_print(f"create: {event.uid}")
        return event

    def update(self, uid: str, patch: Mapping) -> Optional[Event]:
        """
        Merge ``patch`` into the stored event, in place.

        A uid inside the patch is ignored; identity cannot change through
        update. No end >= start check is made here.

        Returns:
            The updated Event, or None if the uid is unknown.

        Raises:
            ArgumentError: empty uid, a patch that is not a mapping, or an
                unknown field name
        """
        if not uid:
            raise ArgumentError("A uid is required to update an event")
        changes = self._coerce_patch(patch)

        try:
            event = self.require(uid)
        except NotFoundError as e:
            _debug_print(f"update: {e}")
            return None

        for name, value in changes.items():
            setattr(event, name, value)
        _debug_print(f"update: {uid} ({', '.join(changes) or 'no changes'})")
        return event

    def delete(self, uid: str) -> bool:
        """Remove the event(s) with this uid. Returns True if anything was removed."""
        if not uid:
            raise ArgumentError("A uid is required to delete an event")
        removed = self.store.remove([uid])
        _debug_print(f"delete: {uid} -> {removed}")
        return removed > 0

    def delete_many(self, uids: Iterable[str]) -> int:
        """
        Remove every event whose uid is listed.

        Returns:
            Number of events removed

        Raises:
            ArgumentError: if ``uids`` is a string or not iterable
        """
        if isinstance(uids, (str, bytes)) or not isinstance(uids, Iterable):
            raise ArgumentError(f"uids must be a sequence of uids, got {type(uids).__name__}")
        return self.store.remove(uids)

    def duplicate(self, uid: str, overrides: Optional[Mapping] = None) -> Optional[Event]:
        """
        Copy an event under a fresh uid, apply ``overrides`` and store it.

        Returns:
            The new Event, or None if the source uid is unknown.
        """
        changes = self._coerce_patch(overrides or {})
        try:
            source = self.require(uid)
        except NotFoundError as e:
            _debug_print(f"duplicate: {e}")
            return None

        clone = source.copy(**changes)
        clone.uid = self.generate_uid()
        self.store.insert(clone)
        return clone

    def move(self, uid: str, new_start: Union[datetime, str], keep_duration: bool = True) -> Optional[Event]:
        """
        Shift an event to a new start.

        With ``keep_duration`` the end moves along when the event has one;
        without it the end is cleared.

        Returns:
            The updated Event, or None if the uid is unknown.
        """
        event = self.get(uid)
        if event is None:
            _debug_print(f"move: no event with uid {uid!r}")
            return None

        start = coerce_timestamp(new_start)
        patch: dict[str, Any] = {'start': start}
        if keep_duration and event.end is not None:
            patch['end'] = start + event.duration
        elif not keep_duration:
            patch['end'] = None
        return self.update(uid, patch)

    def replace_all(self, events: Iterable[Union[Mapping, Event]]) -> int:
        """Replace the store contents with normalized ``events``. Returns the new count."""
        normalized = [self.normalize(e) for e in events]
        self.store.clear()
        return self.store.insert(normalized)

    # ==================== Helpers ====================

    def normalize(self, data: Union[Mapping, Event]) -> Event:
        """Copy an Event, or build one from a record, making sure it has a uid."""
        if isinstance(data, Event):
            event = data.copy()
            if not event.uid:
                event.uid = self.generate_uid()
            return event
        if isinstance(data, Mapping):
            return Event.from_mapping(data, uid_factory=self.generate_uid)
        raise ArgumentError(f"Expected an Event or a mapping, got {type(data).__name__}")

    def _coerce_patch(self, patch: Mapping) -> dict[str, Any]:
        if not isinstance(patch, Mapping):
            raise ArgumentError(f"Patch must be a mapping, got {type(patch).__name__}")

        changes: dict[str, Any] = {}
        for key, value in patch.items():
            name = field_for_key(key)
            if name is None:
                raise ArgumentError(f"Unknown event field: {key!r}")
            if name == 'uid':
                continue
            if name == 'start' and value is None:
                raise ValidationError("Event start cannot be cleared")
            changes[name] = COERCERS[name](value)
        return changes
