#!/usr/bin/env python3
# GRBL Link (GRBL protocol engine)
# Copyright (C) 2026 Bob Kolbasowski
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# Optional (not required by the license): If you make improvements, please consider
# contributing them back upstream (e.g., via a pull request) so others can benefit.
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Engine settings management.

This module handles loading, saving, and validating the connection and
flow-control settings with atomic file operations and automatic backup.
"""

import json
import os
import sys
import shutil
import logging
from typing import Dict, Any, Optional
from pathlib import Path

from .constants import (
    BAUD_DEFAULT,
    MAX_IN_FLIGHT_DEFAULT,
    PORT_SCAN_INTERVAL,
    STATUS_POLL_DEFAULT,
    STATUS_QUERY_FAILURE_LIMIT_DEFAULT,
    STOP_RESET_DELAY,
    VALID_BAUD_RATES,
    MAX_IN_FLIGHT_LIMIT,
)
from .exceptions import (
    SettingsLoadError,
    SettingsSaveError,
    SettingsValidationError,
)

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "grbl_link.json"
SETTINGS_BACKUP_SUFFIX = ".bak"
SETTINGS_TEMP_SUFFIX = ".tmp"
CONFIG_DIR_ENV = "GRBL_LINK_CONFIG_DIR"

ERROR_POLICIES = ("continue", "pause", "stop")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "last_port": "",
    "baud_rate": BAUD_DEFAULT,
    "status_poll_interval": STATUS_POLL_DEFAULT,
    "status_query_failure_limit": STATUS_QUERY_FAILURE_LIMIT_DEFAULT,
    "max_in_flight": MAX_IN_FLIGHT_DEFAULT,
    "stop_reset_delay": STOP_RESET_DELAY,
    "error_policy": "continue",
    "port_scan_interval": PORT_SCAN_INTERVAL,
}


def get_default_settings_dir() -> str:
    """Get default directory for settings storage.

    Returns:
        Path to settings directory
    """
    env_dir = os.getenv(CONFIG_DIR_ENV)
    if env_dir:
        return env_dir

    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
    else:
        base = os.getenv("XDG_CONFIG_HOME")

    if not base:
        base = os.path.expanduser("~")

    return os.path.join(base, "GrblLink")


def get_settings_path() -> str:
    """Get path to settings file.

    Creates the directory if it doesn't exist and falls back to a dot
    directory in the user's home when that fails.

    Returns:
        Full path to settings file
    """
    base_dir = get_default_settings_dir()

    try:
        os.makedirs(base_dir, exist_ok=True)
    except OSError as e:
        logger.warning(f"Failed to create settings directory: {e}")
        fallback_dir = os.path.join(os.path.expanduser("~"), ".grbl_link")
        try:
            os.makedirs(fallback_dir, exist_ok=True)
            base_dir = fallback_dir
        except OSError:
            base_dir = os.getcwd()

    return os.path.join(base_dir, SETTINGS_FILENAME)


class Settings:
    """Engine settings manager.

    Example:
        settings = Settings()
        settings.load()
        settings.set("last_port", "/dev/ttyUSB0")
        settings.save()
    """

    def __init__(self, filepath: Optional[str] = None):
        """Initialize settings manager.

        Args:
            filepath: Optional custom settings file path
        """
        self.filepath = filepath or get_settings_path()
        self.data: Dict[str, Any] = dict(DEFAULT_SETTINGS)
        logger.debug(f"Settings file: {self.filepath}")

    def load(self) -> bool:
        """Load settings from file.

        Returns:
            True if loaded, False when no file exists (defaults stay active)

        Raises:
            SettingsLoadError: If the file exists but cannot be read
        """
        if not os.path.exists(self.filepath):
            logger.info("No settings file found, using defaults")
            return False

        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in settings file: {e}")
            raise SettingsLoadError(f"Invalid JSON: {e}")
        except OSError as e:
            logger.error(f"Failed to read settings file: {e}")
            raise SettingsLoadError(f"Failed to read file: {e}")

        if not isinstance(loaded_data, dict):
            raise SettingsLoadError("Settings file must contain a JSON object")

        merged = dict(DEFAULT_SETTINGS)
        merged.update(loaded_data)
        self.data = merged
        logger.info("Settings loaded successfully")
        return True

    def save(self) -> None:
        """Save settings to file atomically.

        Raises:
            SettingsSaveError: If save fails
        """
        filepath = Path(self.filepath)
        temp_path = Path(str(filepath) + SETTINGS_TEMP_SUFFIX)
        backup_path = Path(str(filepath) + SETTINGS_BACKUP_SUFFIX)

        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)

            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2, sort_keys=True)

            if filepath.exists():
                try:
                    shutil.copy2(filepath, backup_path)
                except OSError as e:
                    logger.warning(f"Failed to create backup: {e}")

            temp_path.replace(filepath)
            logger.info("Settings saved successfully")

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write settings: {e}")
            if backup_path.exists():
                try:
                    shutil.copy2(backup_path, filepath)
                    logger.info("Settings restored from backup")
                except OSError:
                    pass
            raise SettingsSaveError(f"Failed to save: {e}")

        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass

    def get(self, key: str, default: Any = None) -> Any:
        """Get setting value.

        Args:
            key: Setting key (supports dot notation for nested keys)
            default: Default value if key not found
        """
        value: Any = self.data
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set setting value (dot notation creates nested dicts)."""
        keys = key.split(".")
        current = self.data
        for k in keys[:-1]:
            if k not in current or not isinstance(current[k], dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    def reset_to_defaults(self) -> None:
        """Reset all settings to defaults."""
        self.data = dict(DEFAULT_SETTINGS)
        logger.info("Settings reset to defaults")

    def validate(self) -> bool:
        """Validate current settings.

        Returns:
            True if valid

        Raises:
            SettingsValidationError: If validation fails
        """
        baud = self.data.get("baud_rate")
        if baud not in VALID_BAUD_RATES:
            raise SettingsValidationError(f"Invalid baud rate: {baud}")

        for key in ("status_poll_interval", "stop_reset_delay", "port_scan_interval"):
            value = self.data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise SettingsValidationError(f"Invalid {key}: {value}")

        limit = self.data.get("max_in_flight")
        if isinstance(limit, bool) or not isinstance(limit, int) or not (1 <= limit <= MAX_IN_FLIGHT_LIMIT):
            raise SettingsValidationError(f"Invalid max_in_flight: {limit}")

        failures = self.data.get("status_query_failure_limit")
        if isinstance(failures, bool) or not isinstance(failures, int) or failures < 1:
            raise SettingsValidationError(f"Invalid status_query_failure_limit: {failures}")

        policy = self.data.get("error_policy")
        if policy not in ERROR_POLICIES:
            raise SettingsValidationError(f"Invalid error policy: {policy}")

        return True
