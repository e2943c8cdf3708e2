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

"""Periodic status queries."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .utils.constants import (
    STATUS_POLL_DEFAULT,
    STATUS_POLL_INTERVAL_MIN,
    STATUS_QUERY_BACKOFF_BASE,
    STATUS_QUERY_BACKOFF_MAX,
    STATUS_QUERY_FAILURE_LIMIT_DEFAULT,
    STATUS_QUERY_FAILURE_LIMIT_MAX,
    STATUS_QUERY_FAILURE_LIMIT_MIN,
    THREAD_JOIN_TIMEOUT,
)
from .utils.exceptions import GrblLinkException
from .utils.validation import validate_interval

logger = logging.getLogger(__name__)


class StatusPoller:
    """Writes ``?`` on a fixed interval from a daemon thread.

    ``query`` performs the write and raises on failure. After
    ``failure_limit`` consecutive failures ``on_failure_limit`` is called
    with a reason and the thread exits. Status queries are real-time bytes
    and take no part in acknowledgement accounting.
    """

    def __init__(
        self,
        query: Callable[[], None],
        on_failure_limit: Callable[[str], None],
        *,
        interval: float = STATUS_POLL_DEFAULT,
        failure_limit: int = STATUS_QUERY_FAILURE_LIMIT_DEFAULT,
        backoff_base: float = STATUS_QUERY_BACKOFF_BASE,
        backoff_max: float = STATUS_QUERY_BACKOFF_MAX,
    ):
        self._query = query
        self._on_failure_limit = on_failure_limit
        self._interval_lock = threading.Lock()
        self._interval = validate_interval(interval, min_val=STATUS_POLL_INTERVAL_MIN)
        self._failure_limit = STATUS_QUERY_FAILURE_LIMIT_DEFAULT
        self.set_failure_limit(failure_limit)
        self._backoff_base = float(backoff_base)
        self._backoff_max = float(backoff_max)
        self._failures = 0
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        with self._interval_lock:
            return self._interval

    @property
    def failure_limit(self) -> int:
        return self._failure_limit

    @property
    def failures(self) -> int:
        return self._failures

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def set_interval(self, interval: float) -> None:
        interval = validate_interval(interval, min_val=STATUS_POLL_INTERVAL_MIN)
        with self._interval_lock:
            self._interval = interval
        logger.debug(f"Status poll interval set to {interval}s")

    def set_failure_limit(self, limit: int) -> None:
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = STATUS_QUERY_FAILURE_LIMIT_DEFAULT
        limit = max(STATUS_QUERY_FAILURE_LIMIT_MIN, min(STATUS_QUERY_FAILURE_LIMIT_MAX, limit))
        self._failure_limit = limit
        logger.debug(f"Status query failure limit set to {limit}")

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_evt = threading.Event()
        self._failures = 0
        self._thread = threading.Thread(
            target=self._loop,
            args=(self._stop_evt,),
            daemon=True,
            name="GRBL-Status",
        )
        self._thread.start()

    def stop(self, *, join: bool = True) -> None:
        """Stop polling. Safe to call from the polling thread itself."""
        self._stop_evt.set()
        thread = self._thread
        self._thread = None
        if not join or thread is None or thread is threading.current_thread():
            return
        if thread.is_alive():
            thread.join(timeout=THREAD_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning(f"Thread {thread.name} did not terminate")

    def poll_once(self) -> bool:
        """Send one query; returns False once the failure limit is reached."""
        try:
            self._query()
            self._failures = 0
            return True
        except GrblLinkException as e:
            self._failures += 1
            logger.error(
                f"Status query error ({self._failures}/{self._failure_limit}): {e}"
            )
            if self._failures >= self._failure_limit:
                self._on_failure_limit(f"Status query error: {e}")
                return False
            return True

    def _loop(self, stop_evt: threading.Event) -> None:
        logger.debug("Status thread started")
        try:
            while not stop_evt.is_set():
                if not self.poll_once():
                    stop_evt.set()
                    break
                if self._failures:
                    backoff = min(self._backoff_max, self._backoff_base * self._failures)
                    if stop_evt.wait(backoff):
                        break
                    continue
                if stop_evt.wait(self.interval):
                    break
        except Exception as e:
            logger.error(f"Status thread error: {e}", exc_info=True)
            self._on_failure_limit(f"Status thread error: {e}")
            stop_evt.set()
        finally:
            logger.debug("Status thread stopped")
