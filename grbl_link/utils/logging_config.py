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

"""Logging setup for GRBL Link."""

from __future__ import annotations

import logging
import logging.handlers
import tempfile
from pathlib import Path

from .config import get_default_settings_dir

APP_LOGGER_NAME = "grbl_link"
SERIAL_LOGGER_NAME = f"{APP_LOGGER_NAME}.serial"
LOG_DIRNAME = "logs"


def _handler_exists(logger: logging.Logger, name: str) -> bool:
    return any(handler.get_name() == name for handler in logger.handlers)


def get_log_dir() -> Path:
    """Resolve the directory for log files (creates it if needed)."""
    log_dir = Path(get_default_settings_dir()) / LOG_DIRNAME
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir
    except OSError:
        fallback = Path(tempfile.gettempdir()) / "grbl_link_logs"
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def _rotating_handler(
    path: Path,
    name: str,
    level: int,
    formatter: logging.Formatter,
    *,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.set_name(name)
    return handler


def setup_logging(
    log_dir: str | Path | None = None,
    *,
    console_level: int = logging.INFO,
) -> logging.Logger:
    """Initialize package logging with a console handler and rotating files.

    Safe to call more than once: handlers are named and only added when
    missing.

    Args:
        log_dir: Directory for log files (defaults to the config directory)
        console_level: Level for the console handler

    Returns:
        The package root logger
    """
    target_dir = Path(log_dir) if log_dir is not None else get_log_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger(APP_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    root.propagate = False

    if not _handler_exists(root, "grbl_link_console"):
        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
        )
        console.set_name("grbl_link_console")
        root.addHandler(console)

    if not _handler_exists(root, "grbl_link_app_file"):
        root.addHandler(
            _rotating_handler(
                target_dir / "grbl_link.log",
                "grbl_link_app_file",
                logging.DEBUG,
                logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"),
                max_bytes=10_000_000,
                backup_count=5,
            )
        )

    if not _handler_exists(root, "grbl_link_error_file"):
        root.addHandler(
            _rotating_handler(
                target_dir / "errors.log",
                "grbl_link_error_file",
                logging.WARNING,
                logging.Formatter("%(asctime)s [%(levelname)s] %(name)s:%(lineno)d\n%(message)s\n"),
                max_bytes=2_000_000,
                backup_count=5,
            )
        )

    # Wire traffic goes to its own file as well as the package log.
    serial_logger = logging.getLogger(SERIAL_LOGGER_NAME)
    serial_logger.setLevel(logging.DEBUG)
    if not _handler_exists(serial_logger, "grbl_link_serial_file"):
        serial_logger.addHandler(
            _rotating_handler(
                target_dir / "serial.log",
                "grbl_link_serial_file",
                logging.DEBUG,
                logging.Formatter(
                    "%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ),
                max_bytes=5_000_000,
                backup_count=3,
            )
        )

    return root
