"""
Error kinds raised by the event engine.

Construction-time and explicit-validation problems are raised to the caller.
Identity lookups in the Event Manager return None/False instead of raising,
and recurrence expansion degrades to a single occurrence.
"""


class CalendarError(Exception):
    """Base class for all eventcal errors."""


class FormatError(CalendarError, ValueError):
    """Unparsable rule text, date text, ICS or JSON payload."""


class ValidationError(CalendarError, ValueError):
    """Missing required field, end before start, or duplicate identity."""

    def __init__(self, message: str, errors: list[str] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class NotFoundError(CalendarError, LookupError):
    """An operation referenced a uid that is not in the store."""

    def __init__(self, uid: str):
        super().__init__(f"No event with uid {uid!r}")
        self.uid = uid


class ArgumentError(CalendarError, TypeError):
    """Wrong input shape, e.g. a plain string where a sequence of uids is required."""
