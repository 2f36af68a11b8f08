"""
Recurrence engine for eventcal.

Parses and formats RRULE text and expands a recurring Event into concrete
Occurrence objects. Supported fields: FREQ, COUNT, UNTIL, INTERVAL, BYDAY,
BYMONTHDAY, BYMONTH and WKST. Everything here is a pure function; nothing
keeps state between calls.

Expansion walks candidates anchored on the event start
(``start + n * interval`` days, weeks, months or years) and keeps the
candidates that pass every BYMONTH/BYMONTHDAY/BYDAY filter present. When the
anchor day does not exist in a target month (the 31st in a 30-day month,
February 29th in a common year) that candidate is skipped rather than rolled
over or clamped.
"""

import calendar
import re
from datetime import datetime, timedelta
from typing import Callable, Optional, Union
import pytz

from .debug import debug_print
from .errors import ArgumentError, FormatError
from .event_model import (
    EVENT_FIELDS, FREQUENCIES, WEEKDAY_CODES,
    Event, Occurrence, RecurrenceRule,
)
from .timezone_utils import comparable, is_utc


def _debug_print(message: str) -> None:
    debug_print("RECURRENCE", message)


MAX_OCCURRENCES = 730  # Two years of a daily rule

# Upper bound on consecutive candidates that fail the rule's filters. Stops
# rules that can never match (e.g. FREQ=WEEKLY;BYDAY=MO anchored on a
# Tuesday) when neither UNTIL nor a range end is given.
MAX_CANDIDATES = 100_000

_RULE_DATE = re.compile(r'(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})(Z)?)?')


# ==================== Parsing ====================

def parse_rule(text: str) -> RecurrenceRule:
    """
    Parse RRULE text such as ``FREQ=WEEKLY;BYDAY=MO,WE;COUNT=10``.

    An ``RRULE:`` prefix is accepted. Unknown keys are kept under their
    lower-cased name in ``rule.extras``.

    Raises:
        FormatError: empty text, a part that is not KEY=VALUE, or a value
            that does not fit its field.
    """
    if text is None or not str(text).strip():
        raise FormatError("Empty recurrence rule")

    rule_string = str(text).strip()
    if rule_string.upper().startswith('RRULE:'):
        rule_string = rule_string[len('RRULE:'):]

    rule = RecurrenceRule()
    for part in rule_string.split(';'):
        if not part.strip():
            continue
        key, sep, value = part.partition('=')
        key = key.strip()
        value = value.strip()
        if not sep or not key or not value:
            raise FormatError(f"Malformed rule part {part!r} in {text!r}")

        upper_key = key.upper()
        field_parser = _FIELD_PARSERS.get(upper_key)
        if field_parser is None:
            rule.extras[upper_key.lower()] = value
        else:
            field_parser(rule, value)

    return rule


def parse_rule_date(text: str) -> datetime:
    """
    Parse an UNTIL value: ``YYYYMMDD``, ``YYYYMMDDTHHMMSS`` or ``YYYYMMDDTHHMMSSZ``.

    A date-only value means the end of that day, so the whole day stays
    inside the inclusive bound. A trailing Z gives an aware UTC datetime.
    """
    match = _RULE_DATE.fullmatch(text.strip())
    if not match:
        raise FormatError(f"Invalid rule date: {text!r}")

    year, month, day, hour, minute, second, zulu = match.groups()
    try:
        if hour is None:
            return datetime(int(year), int(month), int(day), 23, 59, 59)
        value = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second))
    except ValueError as e:
        raise FormatError(f"Invalid rule date: {text!r}") from e

    if zulu:
        return pytz.UTC.localize(value)
    return value


def _parse_int(name: str, value: str, minimum: int = None, maximum: int = None) -> int:
    try:
        number = int(value)
    except ValueError:
        raise FormatError(f"{name} must be an integer, got {value!r}") from None
    if minimum is not None and number < minimum:
        raise FormatError(f"{name} must be >= {minimum}, got {number}")
    if maximum is not None and number > maximum:
        raise FormatError(f"{name} must be <= {maximum}, got {number}")
    return number


def _parse_weekday(name: str, value: str) -> str:
    code = value.strip().upper()
    if code not in WEEKDAY_CODES:
        raise FormatError(f"{name} expects one of {','.join(WEEKDAY_CODES)}, got {value!r}")
    return code


def _parse_month_day(value: str) -> int:
    day = _parse_int('BYMONTHDAY', value, -31, 31)
    if day == 0:
        raise FormatError("BYMONTHDAY cannot be 0")
    return day


def _set_freq(rule: RecurrenceRule, value: str):
    freq = value.upper()
    if freq not in FREQUENCIES:
        raise FormatError(f"Unsupported FREQ: {value!r}")
    rule.freq = freq


def _set_count(rule: RecurrenceRule, value: str):
    rule.count = _parse_int('COUNT', value, minimum=1)


def _set_until(rule: RecurrenceRule, value: str):
    rule.until = parse_rule_date(value)


def _set_interval(rule: RecurrenceRule, value: str):
    rule.interval = _parse_int('INTERVAL', value, minimum=1)


def _set_by_day(rule: RecurrenceRule, value: str):
    rule.by_day = [_parse_weekday('BYDAY', d) for d in value.split(',')]


def _set_by_month_day(rule: RecurrenceRule, value: str):
    rule.by_month_day = [_parse_month_day(d) for d in value.split(',')]


def _set_by_month(rule: RecurrenceRule, value: str):
    rule.by_month = [_parse_int('BYMONTH', m, 1, 12) for m in value.split(',')]


def _set_wkst(rule: RecurrenceRule, value: str):
    rule.wkst = _parse_weekday('WKST', value)


_FIELD_PARSERS: dict[str, Callable[[RecurrenceRule, str], None]] = {
    'FREQ': _set_freq,
    'COUNT': _set_count,
    'UNTIL': _set_until,
    'INTERVAL': _set_interval,
    'BYDAY': _set_by_day,
    'BYMONTHDAY': _set_by_month_day,
    'BYMONTH': _set_by_month,
    'WKST': _set_wkst,
}


# ==================== Formatting ====================

def format_rule_date(value: datetime) -> str:
    """``YYYYMMDDTHHMMSSZ`` for aware values (in UTC), ``YYYYMMDDTHHMMSS`` for naive ones."""
    suffix = ""
    if value.tzinfo is not None:
        value = value.astimezone(pytz.UTC)
        suffix = "Z"
    return (f"{value.year:04d}{value.month:02d}{value.day:02d}"
            f"T{value.hour:02d}{value.minute:02d}{value.second:02d}{suffix}")


def format_rule(rule: RecurrenceRule) -> str:
    """
    Format a rule as ``RRULE:`` text.

    Field order is FREQ, COUNT, UNTIL, INTERVAL, BYDAY, BYMONTHDAY, BYMONTH,
    WKST, then any extras. INTERVAL is left out when it is 1 and absent
    fields are left out entirely. A rule with no fields formats as "".
    """
    parts = []

    if rule.freq:
        parts.append(f"FREQ={rule.freq.upper()}")
    if rule.count:
        parts.append(f"COUNT={rule.count}")
    if rule.until:
        parts.append(f"UNTIL={format_rule_date(rule.until)}")
    if rule.interval is not None and rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.by_day:
        parts.append(f"BYDAY={','.join(rule.by_day)}")
    if rule.by_month_day:
        parts.append(f"BYMONTHDAY={','.join(str(d) for d in rule.by_month_day)}")
    if rule.by_month:
        parts.append(f"BYMONTH={','.join(str(m) for m in rule.by_month)}")
    if rule.wkst:
        parts.append(f"WKST={rule.wkst}")
    for key, value in rule.extras.items():
        parts.append(f"{key.upper()}={value}")

    return f"RRULE:{';'.join(parts)}" if parts else ""


# ==================== Expansion ====================

def resolve_rule(event: Event) -> Optional[RecurrenceRule]:
    """
    The event's rule as a RecurrenceRule, or None.

    Rule text that does not parse yields None (reported via debug output),
    so the event is handled as a single non-recurring occurrence.
    """
    rule = event.recurrence_rule
    if rule is None or isinstance(rule, RecurrenceRule):
        return rule
    if isinstance(rule, str):
        try:
            return parse_rule(rule)
        except FormatError as e:
            _debug_print(f"Treating {event.uid!r} as non-recurring: {e}")
            return None
    _debug_print(f"Ignoring rule of unsupported type {type(rule).__name__} on {event.uid!r}")
    return None


def nth_candidate(start: datetime, freq: str, steps: int) -> Optional[datetime]:
    """
    The candidate ``steps`` frequency units after ``start``.

    Returns None when the anchor day does not exist in the target month.
    """
    if freq == 'DAILY':
        return start + timedelta(days=steps)
    if freq == 'WEEKLY':
        return start + timedelta(days=7 * steps)
    if freq == 'MONTHLY':
        months = start.month - 1 + steps
        year = start.year + months // 12
        month = months % 12 + 1
    elif freq == 'YEARLY':
        year = start.year + steps
        month = start.month
    else:
        raise ValueError(f"Unsupported frequency: {freq}")

    if start.day > calendar.monthrange(year, month)[1]:
        return None
    return start.replace(year=year, month=month)


def matches_rule(candidate: datetime, rule: RecurrenceRule) -> bool:
    """AND of every BYMONTH, BYMONTHDAY and BYDAY filter present on the rule."""
    local = comparable(candidate)

    if rule.by_month and local.month not in rule.by_month:
        return False

    if rule.by_month_day:
        days_in_month = calendar.monthrange(local.year, local.month)[1]
        if not any(
            d == local.day or (d < 0 and days_in_month + d + 1 == local.day)
            for d in rule.by_month_day
        ):
            return False

    if rule.by_day and WEEKDAY_CODES[local.weekday()] not in rule.by_day:
        return False

    return True


def occurrence_uid(base_uid: str, when: datetime) -> str:
    """Synthetic uid: base uid plus the occurrence date stamp."""
    stamp = f"{when.year:04d}{when.month:02d}{when.day:02d}T{when.hour:02d}{when.minute:02d}{when.second:02d}"
    if is_utc(when):
        stamp += "Z"
    return f"{base_uid}_{stamp}"


def create_occurrence(event: Event, when: datetime) -> Occurrence:
    """Project ``event`` onto ``when``, keeping its duration."""
    base = event.copy()
    values = {name: getattr(base, name) for name in EVENT_FIELDS}
    duration = event.duration
    values.update(
        start=when,
        end=when + duration if duration is not None else None,
        uid=occurrence_uid(event.uid, when),
    )
    return Occurrence(**values, recurring_event_id=event.uid, recurrence_date=when)


def expand_occurrences(
    event: Event,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
    max_occurrences: int = MAX_OCCURRENCES,
) -> list[Event]:
    """
    Expand a recurring event into its occurrences.

    Args:
        event: Template event; its start anchors the series
        range_start: Lower bound of the query window (None = unbounded). It is
            widened backward by the event duration so events crossing the
            lower edge are kept.
        range_end: Inclusive upper bound on occurrence starts (None = unbounded)
        max_occurrences: Cap on emitted occurrences

    Returns:
        A new list in ascending start order. Events without a usable rule, and
        Occurrence objects, come back as ``[event]``.
    """
    if max_occurrences < 1:
        raise ArgumentError(f"max_occurrences must be at least 1, got {max_occurrences}")
    if isinstance(event, Occurrence):
        return [event]

    rule = resolve_rule(event)
    if rule is None or not rule.freq:
        return [event]
    if rule.freq not in FREQUENCIES:
        _debug_print(f"Unsupported FREQ {rule.freq!r} on {event.uid!r}, not expanding")
        return [event]

    duration = event.duration
    span = duration if duration is not None and duration > timedelta(0) else timedelta(0)
    lower = comparable(range_start) - span if range_start is not None else None
    upper = comparable(range_end) if range_end is not None else None
    until = comparable(rule.until) if rule.until is not None else None
    interval = rule.interval if rule.interval is not None else 1

    # COUNT is counted from the series start, so only a COUNT-less walk may
    # skip the steps before the window
    step = 0
    if rule.count is None and lower is not None and interval > 0:
        step = first_step(comparable(event.start), rule.freq, interval, lower)

    occurrences: list[Event] = []
    matched = 0
    misses = 0
    previous: Optional[datetime] = None

    while True:
        if rule.count is not None and matched >= rule.count:
            break
        if len(occurrences) >= max_occurrences:
            break
        if misses >= MAX_CANDIDATES:
            _debug_print(f"Expansion of {event.uid!r} found no match in {MAX_CANDIDATES} candidates, stopping")
            break

        try:
            candidate = nth_candidate(event.start, rule.freq, interval * step)
        except (OverflowError, ValueError):
            break  # Walked past datetime.max
        step += 1
        if candidate is None:
            misses += 1
            continue

        key = comparable(candidate)
        if previous is not None and key <= previous:
            _debug_print(f"Expansion of {event.uid!r} stalled at {candidate}, stopping")
            break
        previous = key

        if until is not None and key > until:
            break
        if upper is not None and key > upper:
            break
        if not matches_rule(candidate, rule):
            misses += 1
            continue

        misses = 0
        matched += 1
        if lower is None or key >= lower:
            occurrences.append(create_occurrence(event, candidate))

    return occurrences


def first_step(start: datetime, freq: str, interval: int, lower: datetime) -> int:
    """
    A step index whose candidate is not after ``lower``.

    Backs off one step from the exact position so UTC offset changes
    between the anchor and the window cannot push it past ``lower``.
    """
    if lower <= start:
        return 0
    if freq in ('DAILY', 'WEEKLY'):
        unit = timedelta(days=interval * (7 if freq == 'WEEKLY' else 1))
        steps = (lower - start) // unit
    elif freq == 'MONTHLY':
        steps = ((lower.year - start.year) * 12 + lower.month - start.month) // interval
    else:
        steps = (lower.year - start.year) // interval
    return max(0, steps - 1)


# ==================== Convenience Constructors ====================

def daily(count: int = 10, interval: int = 1) -> RecurrenceRule:
    return RecurrenceRule(freq='DAILY', count=count, interval=interval)


def weekly(count: int = 10, days: Optional[list[str]] = None) -> RecurrenceRule:
    return RecurrenceRule(freq='WEEKLY', count=count, by_day=list(days) if days else [])


def monthly(count: int = 12, day_of_month: Optional[int] = None) -> RecurrenceRule:
    return RecurrenceRule(freq='MONTHLY', count=count,
                          by_month_day=[day_of_month] if day_of_month else [])


def yearly(count: int = 5) -> RecurrenceRule:
    return RecurrenceRule(freq='YEARLY', count=count)


def to_rule(value: Union[RecurrenceRule, str, dict]) -> RecurrenceRule:
    """Accept a rule object, rule text or a plain record."""
    if isinstance(value, RecurrenceRule):
        return value
    if isinstance(value, str):
        return parse_rule(value)
    if isinstance(value, dict):
        return RecurrenceRule.from_mapping(value)
    raise ArgumentError(f"Cannot build a recurrence rule from {type(value).__name__}")
