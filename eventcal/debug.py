"""
Debug output for eventcal.

Messages go to stderr as ``[HH:MM:SS] TAG: message`` lines. Output is off
until enabled via ``set_debug(True)`` or ``debug = true`` in the config file.
"""

import sys
from datetime import datetime


_enabled: bool = False


def set_debug(enabled: bool):
    """Turn debug output on or off for the whole package."""
    global _enabled
    _enabled = bool(enabled)


def is_enabled() -> bool:
    return _enabled


def debug_print(tag: str, message: str) -> None:
    if not _enabled:
        return
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] {tag}: {message}", file=sys.stderr)
