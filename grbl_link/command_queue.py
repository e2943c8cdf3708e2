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

"""Flow-controlled command queue.

GRBL acknowledges every line with ``ok`` or ``error:N``, strictly in the
order the lines were received, and the acknowledgement carries no id. The
queue therefore only needs to know how many lines are on the wire and, for
each of them in FIFO order, who sent it.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable

from .utils.constants import COMMAND_TERMINATOR, MAX_IN_FLIGHT_DEFAULT
from .utils.exceptions import GrblNotConnectedException, InvalidParameterError
from .utils.validation import validate_max_in_flight

logger = logging.getLogger(__name__)

SOURCE_MANUAL = "manual"
SOURCE_JOB = "job"

LineWriter = Callable[[bytes], bool]


class FlowControlledQueue:
    """Caps the number of unacknowledged lines at ``max_in_flight``.

    Lines sent while the cap is reached wait in a FIFO backlog and go out
    as acknowledgements free slots. Not thread-safe on its own; the engine
    calls it with its lock held.
    """

    def __init__(
        self,
        write: LineWriter,
        max_in_flight: int = MAX_IN_FLIGHT_DEFAULT,
        *,
        on_sent: Callable[[str, str], None] | None = None,
    ):
        self._write = write
        self._cap = validate_max_in_flight(max_in_flight)
        self._on_sent = on_sent
        self._in_flight: deque[str] = deque()
        self._backlog: deque[tuple[str, str]] = deque()

    @property
    def max_in_flight(self) -> int:
        return self._cap

    @property
    def pending(self) -> int:
        """Lines written but not yet acknowledged."""
        return len(self._in_flight)

    @property
    def backlog_size(self) -> int:
        return len(self._backlog)

    def has_capacity(self) -> bool:
        return len(self._in_flight) < self._cap and not self._backlog

    def set_max_in_flight(self, limit: int) -> None:
        self._cap = validate_max_in_flight(limit)
        logger.debug(f"Flow control cap set to {self._cap}")

    def send(self, line: str, source: str = SOURCE_MANUAL) -> bool:
        """Queue ``line`` for the controller.

        Returns:
            True if the line went out now, False if it is waiting in the backlog

        Raises:
            InvalidParameterError: If the line is empty after trimming
            GrblNotConnectedException: If the port is closed
            SerialWriteError: If the port fails during the write
        """
        command = (line or "").strip()
        if not command:
            raise InvalidParameterError("line", line, "must be non-empty")
        if not self.has_capacity():
            self._backlog.append((command, source))
            logger.debug(f"Flow control full ({self._cap}); held: {command}")
            return False
        self._write_line(command, source)
        return True

    def on_ack(self) -> tuple[str | None, list[str]]:
        """Free the oldest slot after an ``ok`` or ``error`` reply.

        Returns:
            The source of the acknowledged line (None for an unexpected ack)
            and the backlog lines written into the freed capacity
        """
        source = self._in_flight.popleft() if self._in_flight else None
        if source is None:
            logger.debug("Acknowledgement with nothing in flight")
        released: list[str] = []
        while self._backlog and len(self._in_flight) < self._cap:
            command, owner = self._backlog.popleft()
            self._write_line(command, owner)
            released.append(command)
        return source, released

    def clear_backlog(self) -> int:
        dropped = len(self._backlog)
        self._backlog.clear()
        return dropped

    def reset(self) -> None:
        """Forget everything in flight (after a soft reset or disconnect)."""
        self._in_flight.clear()
        self._backlog.clear()

    def _write_line(self, command: str, source: str) -> None:
        payload = (command + COMMAND_TERMINATOR).encode("utf-8", errors="replace")
        if not self._write(payload):
            raise GrblNotConnectedException(f"Cannot send '{command}' - not connected")
        self._in_flight.append(source)
        if self._on_sent is not None:
            self._on_sent(command, source)
