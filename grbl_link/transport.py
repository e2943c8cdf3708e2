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

"""Serial transport.

Owns the pyserial port and the RX thread. Raw chunks are handed to
``on_data`` as they arrive; any I/O failure closes the port and is reported
once through ``on_disconnect``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import serial

from .types import ConnectionHandle
from .utils.constants import (
    BAUD_DEFAULT,
    SERIAL_READ_CHUNK,
    SERIAL_TIMEOUT,
    SERIAL_WRITE_TIMEOUT,
    THREAD_JOIN_TIMEOUT,
)
from .utils.exceptions import SerialConnectionError, SerialWriteError
from .utils.validation import validate_baud_rate, validate_port_name

logger = logging.getLogger(__name__)


class SerialTransport:
    """Byte-level connection to one serial device.

    Example:
        transport = SerialTransport(on_data=framer_feed, on_disconnect=handle_loss)
        handle = transport.open("/dev/ttyUSB0", 115200)
        transport.write_bytes(b"?")
        transport.close()
    """

    def __init__(
        self,
        on_data: Callable[[bytes], None],
        on_disconnect: Callable[[str], None],
        *,
        serial_factory: Callable[..., Any] | None = None,
        read_chunk: int = SERIAL_READ_CHUNK,
        timeout: float = SERIAL_TIMEOUT,
        write_timeout: float = SERIAL_WRITE_TIMEOUT,
    ):
        self._on_data = on_data
        self._on_disconnect = on_disconnect
        self._serial_factory = serial_factory
        self._read_chunk = int(read_chunk)
        self._timeout = timeout
        self._write_timeout = write_timeout

        self.ser: Any | None = None
        self._handle: ConnectionHandle | None = None
        self._rx_thread: threading.Thread | None = None
        self._stop_evt = threading.Event()
        self._write_lock = threading.Lock()
        self._state_lock = threading.Lock()

    @property
    def handle(self) -> ConnectionHandle | None:
        return self._handle

    def is_open(self) -> bool:
        ser = self.ser
        return ser is not None and bool(getattr(ser, "is_open", True))

    def open(self, port: str, baud: int = BAUD_DEFAULT) -> ConnectionHandle:
        """Open ``port`` and start the RX thread.

        Raises:
            SerialConnectionError: If the device is missing, busy or refuses
                the settings
        """
        port = validate_port_name(port)
        baud = validate_baud_rate(baud)
        if self.is_open():
            self.close()

        factory = self._serial_factory or serial.Serial
        try:
            ser = factory(
                port,
                baudrate=baud,
                timeout=self._timeout,
                write_timeout=self._write_timeout,
            )
        except serial.SerialException as e:
            raise SerialConnectionError(f"Failed to connect to {port}: {e}")
        except (OSError, ValueError) as e:
            raise SerialConnectionError(f"Unexpected error connecting to {port}: {e}")

        try:
            ser.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            logger.warning(f"Failed to reset input buffer: {e}")

        handle = ConnectionHandle(port=port, baud=baud, opened_at=time.time())
        stop_evt = threading.Event()
        with self._state_lock:
            self.ser = ser
            self._handle = handle
            self._stop_evt = stop_evt
        self._rx_thread = threading.Thread(
            target=self._rx_loop,
            args=(stop_evt, ser),
            daemon=True,
            name="GRBL-RX",
        )
        self._rx_thread.start()
        logger.info(f"Serial port {port} opened at {baud} baud")
        return handle

    def write_bytes(self, data: bytes) -> bool:
        """Write all of ``data``.

        Returns:
            False if the port is not open, True once every byte is written

        Raises:
            SerialWriteError: If the port fails mid-write (the port is closed
                and the disconnect callback fires before this is raised)
        """
        ser = self.ser
        if ser is None or not self.is_open():
            return False
        try:
            with self._write_lock:
                total = 0
                length = len(data)
                while total < length:
                    written = ser.write(data[total:])
                    if written is None:
                        written = 0
                    if written <= 0:
                        raise serial.SerialTimeoutException("Write returned 0 bytes")
                    total += written
            return True
        except serial.SerialTimeoutException as e:
            logger.error(f"Write timeout: {e}")
            self._fail(f"Serial write timeout: {e}")
            raise SerialWriteError(f"Write timeout: {e}")
        except (serial.SerialException, OSError) as e:
            logger.error(f"Serial write error: {e}")
            self._fail(f"Serial write error: {e}")
            raise SerialWriteError(f"Serial write error: {e}")

    def close(self, *, join: bool = True) -> None:
        """Close the port and stop the RX thread. Idempotent.

        Pass ``join=False`` when the caller may hold a lock the RX thread
        is waiting on.
        """
        self._shutdown(join=join)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _shutdown(self, *, join: bool) -> bool:
        with self._state_lock:
            ser = self.ser
            thread = self._rx_thread
            self._stop_evt.set()
            self.ser = None
            self._handle = None
            self._rx_thread = None
        if ser is None:
            return False
        try:
            ser.close()
            logger.info("Serial port closed")
        except (serial.SerialException, OSError) as e:
            logger.error(f"Error closing serial port: {e}")
        if join and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=THREAD_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning(f"Thread {thread.name} did not terminate")
        return True

    def _fail(self, reason: str) -> None:
        # Only the first failure of a session reaches the callback.
        if self._shutdown(join=False):
            self._on_disconnect(reason)

    def _rx_loop(self, stop_evt: threading.Event, ser: Any) -> None:
        logger.debug("RX thread started")
        try:
            while not stop_evt.is_set():
                try:
                    chunk = ser.read(self._read_chunk)
                except serial.SerialTimeoutException:
                    continue
                except (serial.SerialException, OSError, TypeError) as e:
                    # Closing the port from another thread can interrupt a read.
                    if stop_evt.is_set():
                        break
                    logger.error(f"Serial read error: {e}")
                    self._fail(f"Serial read error: {e}")
                    break
                if not chunk:
                    continue
                if stop_evt.is_set():
                    break
                self._on_data(bytes(chunk))
        except Exception as e:
            logger.error(f"RX thread error: {e}", exc_info=True)
            if not stop_evt.is_set():
                self._fail(f"RX thread error: {e}")
        finally:
            logger.debug("RX thread stopped")
