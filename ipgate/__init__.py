"""ipgate: temporary IP authorization behind a forward-auth proxy."""

from .config import ConfigError, ScheduleConfig, Settings, get_settings
from .logging_config import configure_logging

__all__ = ["ConfigError", "ScheduleConfig", "Settings", "get_settings", "configure_logging"]
