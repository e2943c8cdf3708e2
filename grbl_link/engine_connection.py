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

"""Connection management for the GRBL engine."""

from __future__ import annotations

import logging

from grbl_link.types import ConnectionHandle, EngineState, PortInfo

from .ports import PortWatcher, list_ports
from .utils.exceptions import SerialConnectionError
from .utils.validation import validate_baud_rate, validate_port_name

logger = logging.getLogger(__name__)


class EngineConnectionMixin(EngineState):
    """Connection lifecycle support for the GRBL engine."""

    @property
    def handle(self) -> ConnectionHandle | None:
        return self._handle

    def list_ports(self) -> list[PortInfo]:
        """Get the serial ports currently present."""
        return list_ports()

    def start_port_watch(self, interval: float | None = None) -> None:
        """Publish a ``("ports", [...])`` event whenever devices come or go."""
        if self._port_watcher is not None and self._port_watcher.is_running():
            return
        if interval is None:
            interval = self._config["port_scan_interval"]
        self._port_watcher = PortWatcher(
            lambda ports: self._emit(("ports", ports)),
            interval=interval,
        )
        self._port_watcher.start()

    def stop_port_watch(self) -> None:
        watcher = self._port_watcher
        self._port_watcher = None
        if watcher is not None:
            watcher.stop()

    def connect(self, port: str, baud: int | None = None) -> ConnectionHandle:
        """Connect to a GRBL controller.

        Args:
            port: Serial port name (e.g., 'COM3' or '/dev/ttyUSB0')
            baud: Baud rate (default: the configured ``baud_rate``)

        Returns:
            Handle describing the open connection

        Raises:
            SerialConnectionError: If the port cannot be opened
            InvalidParameterError: If parameters are invalid
        """
        port = validate_port_name(port)
        baud = validate_baud_rate(baud if baud is not None else self._config["baud_rate"])

        if self.is_connected():
            self.disconnect()

        with self._lock:
            self._framer.reset()
            self._parser.reset()
            self._queue.reset()
            self._ready = False
            self._alarm_active = False
            self._status = None
            self._overrides.update_from_status(None)

        try:
            handle = self._transport.open(port, baud)
        except SerialConnectionError as e:
            logger.error(str(e))
            self._emit(("log", f"[connect failed] {e}"))
            raise

        with self._lock:
            self._handle = handle
        self._config["last_port"] = port
        if self.settings is not None:
            self.settings.set("last_port", port)

        self._poller.start()
        self._emit(("conn", True, port))
        logger.info(f"Connected to {port} at {baud} baud")
        return handle

    def disconnect(self) -> None:
        """Disconnect from the controller.

        Stops polling, stops any active job and closes the port.
        Thread-safe and idempotent.
        """
        self._poller.stop()
        with self._lock:
            was_connected = self._handle is not None
            # Writes triggered by the flushed tail must not reach the port.
            self._handle = None
            if was_connected:
                self._flush_rx_tail()
            self._streamer.abort("Disconnected")
            self._reset_link_state()
        # Outside the lock: the RX thread may be waiting on it.
        self._transport.close()
        if was_connected:
            self._emit(("ready", False))
            self._emit(("conn", False, None))
            logger.info("Disconnected")

    def is_connected(self) -> bool:
        """Check if connected to GRBL.

        Returns:
            True if a handle is active and the port is open
        """
        return self._handle is not None and self._transport.is_open()

    def _reset_link_state(self) -> None:
        self._handle = None
        self._ready = False
        self._alarm_active = False
        self._queue.reset()
        self._framer.reset()

    def _signal_disconnect(self, reason: str | None = None) -> None:
        """Handle an unexpected loss of the connection."""
        reason = reason or "Connection lost"
        self._poller.stop(join=False)
        with self._lock:
            if self._handle is None:
                return
            self._handle = None
            self._flush_rx_tail()
            self._streamer.abort(reason)
            self._reset_link_state()
        self._transport.close(join=False)
        logger.warning(f"Disconnected: {reason}")
        self._emit(("disconnect", reason))
        self._emit(("ready", False))
        self._emit(("conn", False, None))
        self._emit(("log", f"[disconnect] {reason}"))
