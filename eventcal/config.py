"""
Configuration parser for eventcal.

Handles TOML file parsing. Every section is optional; a missing key falls back
to the dataclass default, so ``Config()`` is a complete default configuration.
"""

import tomllib
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from .debug import debug_print, set_debug
from .timezone_utils import set_timezone


def _debug_print(message: str) -> None:
    debug_print("CONFIG", message)


@dataclass
class RecurrenceConfig:
    """Limits for recurrence expansion."""
    max_occurrences: int = 730  # Two years of a daily rule


@dataclass
class IdentityConfig:
    """Configuration for generated uids."""
    uid_suffix: str = "eventcal"  # Part after '@' in generated uids
    enforce_unique_uids: bool = True  # Reject create() with a uid already stored


@dataclass
class GridConfig:
    """Configuration for the month grid."""
    first_weekday: int = 6  # 0=Monday ... 6=Sunday
    day_names: list[str] = None  # Mon Tue Wed Thu Fri Sat Sun
    month_names: list[str] = None  # January February ... December

    def __post_init__(self):
        if self.day_names is None:
            self.day_names = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
        if self.month_names is None:
            self.month_names = [
                "January", "February", "March", "April", "May", "June",
                "July", "August", "September", "October", "November", "December"
            ]
        if not 0 <= self.first_weekday <= 6:
            raise ValueError(f"first_weekday must be 0..6, got {self.first_weekday}")

    def get_day_name(self, weekday: int) -> str:
        """Get day name for weekday (0=Monday, 6=Sunday)."""
        return self.day_names[weekday] if 0 <= weekday < len(self.day_names) else ""

    def get_month_name(self, month: int) -> str:
        """Get month name (1=January, 12=December)."""
        return self.month_names[month - 1] if 1 <= month <= len(self.month_names) else ""

    def header(self) -> list[str]:
        """Day names in grid column order, starting at first_weekday."""
        return [self.get_day_name((self.first_weekday + i) % 7) for i in range(7)]


@dataclass
class Config:
    """Main configuration container for eventcal."""

    timezone: str = "UTC"  # Local zone used to compare UTC and naive timestamps
    debug: bool = False
    recurrence: RecurrenceConfig = field(default_factory=RecurrenceConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    grid: GridConfig = field(default_factory=GridConfig)

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default configuration file path."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(xdg_config) / 'eventcal' / 'eventcal.toml'

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """Load configuration from TOML file."""
        if config_path is None:
            config_path = cls.get_default_config_path()
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'rb') as f:
            data = tomllib.load(f)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        """Build a Config from already-parsed TOML tables."""
        general = data.get('General', {})

        recurrence_data = data.get('Recurrence', {})
        recurrence = RecurrenceConfig(
            max_occurrences=recurrence_data.get('max_occurrences', RecurrenceConfig.max_occurrences),
        )
        if recurrence.max_occurrences < 1:
            raise ValueError("Recurrence.max_occurrences must be at least 1")

        identity_data = data.get('Identity', {})
        identity = IdentityConfig(
            uid_suffix=identity_data.get('uid_suffix', IdentityConfig.uid_suffix),
            enforce_unique_uids=identity_data.get('enforce_unique_uids', IdentityConfig.enforce_unique_uids),
        )

        # Day and month names are space-separated strings
        grid_data = data.get('Grid', {})
        day_names_str = grid_data.get('day_names', '')
        month_names_str = grid_data.get('month_names', '')
        grid = GridConfig(
            first_weekday=grid_data.get('first_weekday', GridConfig.first_weekday),
            day_names=day_names_str.split() if day_names_str else None,
            month_names=month_names_str.split() if month_names_str else None,
        )

        config = cls(
            timezone=general.get('timezone', cls.timezone),
            debug=general.get('debug', cls.debug),
            recurrence=recurrence,
            identity=identity,
            grid=grid,
        )
        _debug_print(f"Loaded config: timezone={config.timezone}, "
                     f"max_occurrences={recurrence.max_occurrences}")
        return config

    def apply(self) -> None:
        """Push process-wide settings (timezone, debug output) into effect."""
        set_debug(self.debug)
        set_timezone(self.timezone)
