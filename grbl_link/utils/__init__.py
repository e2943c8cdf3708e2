"""Utility modules for GRBL Link."""

from .constants import *
from .exceptions import *
from .validation import *
from .config import Settings, get_settings_path
from .logging_config import setup_logging

__all__ = [
    # Config
    "Settings",
    "get_settings_path",
    # Logging
    "setup_logging",
]
