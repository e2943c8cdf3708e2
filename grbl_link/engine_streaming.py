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
from typing import Iterable

from grbl_link.types import EngineState, ErrorPolicy, JobProgress, JobState, JobStatus

from .utils.exceptions import GrblNotConnectedException

logger = logging.getLogger(__name__)


class EngineStreamingMixin(EngineState):
    def is_running(self) -> bool:
        """Check if a job is running or paused.

        Returns:
            True while a job is active
        """
        return self._streamer.is_active()

    @property
    def job(self) -> JobState:
        return self._streamer.job

    @property
    def job_status(self) -> JobStatus:
        return self._streamer.status

    def job_progress(self) -> JobProgress:
        with self._lock:
            return self._streamer.progress()

    @property
    def error_policy(self) -> ErrorPolicy:
        return self._streamer.error_policy

    def set_error_policy(self, policy: ErrorPolicy | str) -> None:
        """Choose what a job does on ``error:N``: continue, pause or stop."""
        policy = ErrorPolicy(policy)
        with self._lock:
            self._streamer.error_policy = policy
        self._config["error_policy"] = policy.value
        logger.debug(f"Error policy set to {policy.value}")

    def set_max_in_flight(self, limit: int) -> None:
        """Change the number of unacknowledged lines allowed on the wire."""
        with self._lock:
            self._queue.set_max_in_flight(limit)
            self._config["max_in_flight"] = self._queue.max_in_flight

    def start_job(self, lines: Iterable[str], *, name: str | None = None) -> None:
        """Start streaming ``lines`` (blank lines and comments are skipped).

        Raises:
            GrblNotConnectedException: If not connected
            GrblStreamingException: If a job is already active
            GcodeValidationError: If no executable lines remain
        """
        with self._lock:
            if not self.is_connected():
                raise GrblNotConnectedException("Cannot start job - not connected")
            self._streamer.start(lines, name=name)

    def pause_job(self) -> bool:
        """Pause the running job (feed hold)."""
        with self._lock:
            return self._streamer.pause()

    def resume_job(self) -> bool:
        """Resume the paused job (cycle start)."""
        with self._lock:
            return self._streamer.resume()

    def stop_job(self) -> bool:
        """Stop the active job: feed hold now, soft reset shortly after."""
        with self._lock:
            return self._streamer.stop()
