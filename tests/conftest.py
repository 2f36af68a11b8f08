"""Shared fixtures: every test starts in UTC with debug output off."""

import pytest

from eventcal.debug import set_debug
from eventcal.timezone_utils import set_timezone


@pytest.fixture(autouse=True)
def reset_process_settings():
    set_timezone("UTC")
    set_debug(False)
    yield
    set_timezone("UTC")
    set_debug(False)
