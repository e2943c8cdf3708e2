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

import logging

from grbl_link.types import EngineState, JobStatus, Overrides

from .command_queue import SOURCE_MANUAL
from .utils.constants import (
    AXES,
    RT_HOLD,
    RT_JOG_CANCEL,
    RT_RESET,
    RT_RESUME,
)
from .utils.exceptions import GrblLinkException, GrblNotConnectedException
from .utils.logging_config import SERIAL_LOGGER_NAME
from .utils.validation import validate_axis, validate_distance, validate_feed_rate

logger = logging.getLogger(__name__)
serial_logger = logging.getLogger(SERIAL_LOGGER_NAME)


def _fmt_number(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _axis_words(axis: str, value: str) -> str:
    axes = AXES if axis == "ALL" else (axis,)
    return " ".join(f"{a}{value}" for a in axes)


class EngineCommandMixin(EngineState):
    def send(self, line: str) -> bool:
        """Send a command line through flow control.

        Used for console commands and interactive buttons. Job lines use the
        same path from the job streamer.

        Returns:
            True if written now, False if held until an acknowledgement frees
            a slot

        Raises:
            GrblNotConnectedException: If not connected
            InvalidParameterError: If the line is empty
        """
        with self._lock:
            if not self.is_connected():
                raise GrblNotConnectedException("Cannot send command - not connected")
            return self._queue.send(line, SOURCE_MANUAL)

    def send_realtime(self, command: bytes) -> None:
        """Send real-time command (no newline, no acknowledgement).

        Raises:
            GrblNotConnectedException: If not connected
            SerialWriteError: If write fails
        """
        with self._lock:
            if not self._write_raw(command):
                raise GrblNotConnectedException("Cannot send real-time command - not connected")

    def _write_raw(self, data: bytes) -> bool:
        with self._lock:
            if self._handle is None:
                return False
            return self._transport.write_bytes(data)

    def _on_line_sent(self, command: str, source: str) -> None:
        serial_logger.debug(f"TX {command}")
        self._emit(("log_tx", command))

    # ========================================================================
    # INTERACTIVE COMMANDS
    # ========================================================================

    def jog(self, axis: str, distance: float, feed: float) -> bool:
        """Incremental jog on one axis (``$J=G91 X10 F500``).

        Raises:
            GrblNotConnectedException: If not connected
            InvalidParameterError: If parameters are invalid
        """
        axis = validate_axis(axis)
        distance = validate_distance(distance)
        feed = validate_feed_rate(feed)
        return self.send(f"$J=G91 {axis}{_fmt_number(distance)} F{_fmt_number(feed)}")

    def jog_cancel(self) -> None:
        """Cancel active jog command."""
        self.send_realtime(RT_JOG_CANCEL)

    def home(self) -> bool:
        """Send home command ($H) to run homing cycle."""
        return self.send("$H")

    def unlock(self) -> bool:
        """Send unlock command ($X) to clear alarm state."""
        return self.send("$X")

    def set_zero(self, axis: str = "all") -> bool:
        """Make the current position the work zero for ``axis`` (or all)."""
        axis = validate_axis(axis, allow_all=True)
        return self.send(f"G10 L20 P1 {_axis_words(axis, '0')}")

    def go_to_zero(self, axis: str = "all") -> bool:
        """Rapid to work zero on ``axis`` (or all)."""
        axis = validate_axis(axis, allow_all=True)
        return self.send(f"G0 {_axis_words(axis, '0')}")

    def feed_hold(self) -> None:
        """Send feed hold (!). Pauses the job when one is running."""
        with self._lock:
            if self._streamer.status is JobStatus.RUNNING:
                self._streamer.pause()
                return
            self.send_realtime(RT_HOLD)

    def resume(self) -> None:
        """Send cycle start (~). Resumes the job when one is paused."""
        with self._lock:
            if self._streamer.status is JobStatus.PAUSED:
                self._streamer.resume()
                return
            self.send_realtime(RT_RESUME)

    def reset(self) -> None:
        """Send soft reset (Ctrl-X).

        Immediately halts all motion; GRBL drops every queued line, so the
        in-flight count is cleared and an active job is stopped.
        """
        with self._lock:
            self.send_realtime(RT_RESET)
            self._streamer.abort("Soft reset")
            self._after_soft_reset()

    def _after_soft_reset(self) -> None:
        self._queue.reset()
        self._ready = False
        self._emit(("ready", False))

    def _deliver_stop_reset(self) -> None:
        with self._lock:
            if self._handle is None:
                return
            try:
                self.send_realtime(RT_RESET)
            except GrblLinkException as e:
                logger.error(f"Reset failed: {e}")
                self._emit(("log", f"[reset failed] {e}"))
                return
            self._after_soft_reset()

    # ========================================================================
    # OVERRIDES
    # ========================================================================

    @property
    def overrides(self) -> Overrides:
        return self._overrides.current

    def set_feed_override(self, percent: float) -> list[bytes]:
        """Move the feed override to ``percent`` (10..200, 100 resets)."""
        with self._lock:
            self._require_connection("set feed override")
            return self._overrides.set_feed(percent)

    def set_spindle_override(self, percent: float) -> list[bytes]:
        """Move the spindle override to ``percent`` (10..200, 100 resets)."""
        with self._lock:
            self._require_connection("set spindle override")
            return self._overrides.set_spindle(percent)

    def set_rapid_override(self, percent: int) -> list[bytes]:
        """Set the rapid override; only 25, 50 and 100 exist."""
        with self._lock:
            self._require_connection("set rapid override")
            return self._overrides.set_rapid(percent)

    def reset_overrides(self) -> list[bytes]:
        with self._lock:
            self._require_connection("reset overrides")
            return self._overrides.reset_all()

    def _require_connection(self, action: str) -> None:
        if not self.is_connected():
            raise GrblNotConnectedException(f"Cannot {action} - not connected")
