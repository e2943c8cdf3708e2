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

"""Subscribable event stream.

Events are plain tuples whose first element names the event (``"status"``,
``"progress"``, ``"alarm"`` ...). Every subscriber gets its own unbounded
queue so a slow consumer never blocks the thread that produced the event.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any

logger = logging.getLogger(__name__)


class EventStream:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[queue.Queue[Any]] = []

    def subscribe(self) -> queue.Queue[Any]:
        """Register a new consumer and return the queue it should read."""
        q: queue.Queue[Any] = queue.Queue()
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue[Any]) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                logger.debug("Unsubscribe for unknown queue ignored")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def put(self, event: Any) -> None:
        """Fan ``event`` out to every current subscriber."""
        with self._lock:
            targets = list(self._subscribers)
        for q in targets:
            q.put_nowait(event)


def drain(q: queue.Queue[Any]) -> list[Any]:
    """Return every event currently waiting in ``q`` without blocking."""
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items
