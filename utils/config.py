"""
Reader configuration.
Defaults come from the environment (or a .env file) and are overridden by CLI flags.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from timing.delta import CheckPolicy, DEFAULT_SKIP_COUNT

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class ReaderConfig:
    """Settings for one readgps session."""

    device: Optional[str] = None
    wait: float = 1.0
    skip_count: int = DEFAULT_SKIP_COUNT
    show_diff: bool = False
    oneshot: bool = False
    flush: bool = False
    flag_tick_delta: bool = False
    enforce_tick_delta: bool = False
    flag_calendar_delta: bool = False
    abort_on_format_error: bool = False
    csv_file: Optional[str] = None
    log_level: str = 'WARNING'
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'ReaderConfig':
        """
        Build defaults from READGPS_* environment variables.

        Args:
            dotenv_path: Optional .env file (default: search from cwd)
        """
        load_dotenv(dotenv_path)

        return cls(
            device=os.getenv('READGPS_DEVICE'),
            wait=float(os.getenv('READGPS_WAIT', '1')),
            skip_count=int(os.getenv('READGPS_SKIP', str(DEFAULT_SKIP_COUNT))),
            flag_tick_delta=_env_bool('READGPS_FLAG_DT'),
            enforce_tick_delta=_env_bool('READGPS_REQUIRE_DT'),
            flag_calendar_delta=_env_bool('READGPS_FLAG_GPS'),
            log_level=os.getenv('READGPS_LOG_LEVEL', 'WARNING'),
            log_file=os.getenv('READGPS_LOG_FILE'),
        )

    def apply_args(self, args) -> 'ReaderConfig':
        """Override settings with parsed CLI arguments that were given."""
        for key in self.__dataclass_fields__:
            value = getattr(args, key, None)
            if value is None:
                continue
            # store_true flags only switch options on
            if value is False and isinstance(getattr(self, key), bool):
                continue
            setattr(self, key, value)
        return self

    @property
    def policy(self) -> CheckPolicy:
        return CheckPolicy(
            skip_count=self.skip_count,
            enforce_tick_delta=self.enforce_tick_delta,
            flag_tick_delta=self.flag_tick_delta,
            flag_calendar_delta=self.flag_calendar_delta,
        )
