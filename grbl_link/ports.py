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

"""Serial port discovery and hot-plug detection."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from serial.tools import list_ports as serial_list_ports

from .types import PortInfo
from .utils.constants import PORT_SCAN_INTERVAL, THREAD_JOIN_TIMEOUT
from .utils.validation import validate_interval

logger = logging.getLogger(__name__)


def list_ports() -> list[PortInfo]:
    """Get the serial ports currently present, sorted by device name."""
    ports = []
    for p in serial_list_ports.comports():
        ports.append(
            PortInfo(
                device=p.device,
                description=p.description or "",
                manufacturer=p.manufacturer,
                serial_number=p.serial_number,
                vid=p.vid,
                pid=p.pid,
            )
        )
    return sorted(ports, key=lambda info: info.device)


class PortWatcher:
    """Rescans the port list and reports when the set of devices changes.

    ``on_change`` receives the full new list whenever a device appears or
    disappears, for example when a controller is plugged in over USB.
    """

    def __init__(
        self,
        on_change: Callable[[list[PortInfo]], None],
        *,
        interval: float = PORT_SCAN_INTERVAL,
        scanner: Callable[[], list[PortInfo]] = list_ports,
    ):
        self._on_change = on_change
        self._interval = validate_interval(interval, min_val=0.05)
        self._scanner = scanner
        self._known: frozenset[str] | None = None
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def scan(self) -> bool:
        """Rescan once; returns True when a change was reported."""
        ports = self._scanner()
        devices = frozenset(p.device for p in ports)
        if devices == self._known:
            return False
        if self._known is not None:
            added = sorted(devices - self._known)
            removed = sorted(self._known - devices)
            logger.info(f"Serial ports changed (added={added}, removed={removed})")
        self._known = devices
        self._on_change(ports)
        return True

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_evt = threading.Event()
        self._thread = threading.Thread(
            target=self._loop,
            args=(self._stop_evt,),
            daemon=True,
            name="GRBL-PortWatch",
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_evt.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=THREAD_JOIN_TIMEOUT)

    def _loop(self, stop_evt: threading.Event) -> None:
        logger.debug("Port watcher started")
        try:
            while not stop_evt.is_set():
                try:
                    self.scan()
                except OSError as e:
                    logger.warning(f"Port scan failed: {e}")
                if stop_evt.wait(self._interval):
                    break
        finally:
            logger.debug("Port watcher stopped")
