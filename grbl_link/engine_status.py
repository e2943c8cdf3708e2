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

from grbl_link.types import EngineState, LineKind, MachineStatus

from .command_queue import SOURCE_JOB
from .status_parser import ParsedLine
from .utils.constants import RT_STATUS
from .utils.exceptions import GrblLinkException
from .utils.logging_config import SERIAL_LOGGER_NAME
from .utils.validation import validate_interval

logger = logging.getLogger(__name__)
serial_logger = logging.getLogger(SERIAL_LOGGER_NAME)


class EngineStatusMixin(EngineState):
    @property
    def status(self) -> MachineStatus | None:
        """Latest decoded status report, or None before the first one."""
        return self._status

    def is_ready(self) -> bool:
        return self._ready

    def is_alarm_active(self) -> bool:
        return self._alarm_active

    def set_status_poll_interval(self, interval: float) -> None:
        """Set status polling interval.

        Args:
            interval: Polling interval in seconds

        Raises:
            InvalidParameterError: If interval is invalid
        """
        interval = validate_interval(interval, min_val=0.01)
        self._poller.set_interval(interval)
        self._config["status_poll_interval"] = interval

    def set_status_query_failure_limit(self, limit: int) -> None:
        """Set the number of consecutive status failures before disconnect."""
        self._poller.set_failure_limit(limit)
        self._config["status_query_failure_limit"] = self._poller.failure_limit

    def _query_status(self) -> None:
        self.send_realtime(RT_STATUS)

    def _mark_ready(self) -> None:
        """Mark GRBL as ready (banner or first status received)."""
        if not self._ready:
            self._ready = True
            self._emit(("ready", True))
            logger.info("GRBL ready")

    # ========================================================================
    # RECEIVE PATH
    # ========================================================================

    def _on_rx_data(self, chunk: bytes) -> None:
        """Feed a raw chunk from the RX thread through framer and parser."""
        with self._lock:
            for raw in self._framer.feed(chunk):
                self._dispatch_raw_line(raw)

    def _flush_rx_tail(self) -> None:
        """Dispatch a trailing line the controller never terminated."""
        with self._lock:
            tail = self._framer.flush()
            if tail is not None:
                self._dispatch_raw_line(tail)

    def _dispatch_raw_line(self, raw: bytes) -> None:
        text = raw.decode("utf-8", errors="replace").strip()
        if not text:
            return
        serial_logger.debug(f"RX {text}")
        self._handle_rx_line(self._parser.parse(text))

    def _handle_rx_line(self, parsed: ParsedLine) -> None:
        kind = parsed.kind
        if kind is LineKind.STATUS:
            self._handle_status(parsed.status)
        elif kind is LineKind.OK:
            self._handle_ack(True)
        elif kind is LineKind.ERROR:
            logger.error(f"GRBL error: {parsed.message}")
            self._emit(("error", parsed.code, parsed.message))
            self._handle_ack(False, parsed.code, parsed.message)
        elif kind is LineKind.ALARM:
            self._handle_alarm(parsed.code, parsed.message)
        elif kind is LineKind.INFO:
            if parsed.raw.lower().startswith("grbl"):
                self._handle_banner(parsed.raw)
            self._emit(("log", parsed.raw))
        else:
            logger.debug(f"Unclassified line: {parsed.raw}")
            self._emit(("unclassified", parsed.raw))

    def _handle_status(self, status: MachineStatus | None) -> None:
        if status is None:
            return
        self._mark_ready()
        self._status = status
        self._overrides.update_from_status(status.overrides)
        if status.is_alarm:
            self._alarm_active = True
        elif self._alarm_active:
            self._alarm_active = False
            logger.info("Alarm cleared")
        self._emit(("status", status))

    def _handle_ack(self, ok: bool, code: int | None = None, message: str = "") -> None:
        try:
            source, _released = self._queue.on_ack()
            if source == SOURCE_JOB:
                self._streamer.on_ack(ok, code, message)
            elif self._streamer.is_active():
                self._streamer.pump()
        except GrblLinkException as e:
            # The transport has already reported the disconnect.
            logger.error(f"Failed to send after acknowledgement: {e}")

    def _handle_alarm(self, code: int | None, message: str) -> None:
        logger.warning(f"GRBL ALARM: {message}")
        self._alarm_active = True
        self._emit(("alarm", code, message))
        self._emit(("log", f"[ALARM] {message}"))

    def _handle_banner(self, banner: str) -> None:
        # A banner means the controller restarted and dropped its buffers.
        logger.info(f"Controller banner: {banner}")
        self._streamer.abort("Controller reset")
        self._queue.reset()
        self._alarm_active = False
        self._mark_ready()
