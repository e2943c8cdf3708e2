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

"""Job streaming state machine.

Feeds a loaded list of G-code lines into the flow-controlled queue and
advances as acknowledgements come back:

    idle -> running -> (paused <-> running) -> completed | stopped | failed
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Any, Callable, Iterable

from .command_queue import SOURCE_JOB, FlowControlledQueue
from .types import ErrorPolicy, JobProgress, JobState, JobStatus
from .utils.constants import COMMENT_PREFIXES, RT_HOLD, RT_RESUME, STOP_RESET_DELAY
from .utils.exceptions import GcodeValidationError, GrblStreamingException

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
TimerFactory = Callable[[float, Callable[[], None]], Any]


def clean_job_lines(lines: Iterable[str]) -> tuple[str, ...]:
    """Strip lines and drop blanks and full-line comments."""
    cleaned = []
    for raw in lines:
        line = (raw or "").strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        cleaned.append(line)
    return tuple(cleaned)


def _default_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.name = "GRBL-StopReset"
    return timer


class JobStreamer:
    """Streams one job at a time through a :class:`FlowControlledQueue`.

    All methods expect the engine lock to be held. Real-time bytes go out
    through ``send_realtime``; the soft reset that ends a stop is delivered
    through ``reset`` after ``stop_reset_delay`` seconds.
    """

    def __init__(
        self,
        queue: FlowControlledQueue,
        emit: Callable[[Any], None],
        send_realtime: Callable[[bytes], None],
        reset: Callable[[], None],
        *,
        error_policy: ErrorPolicy = ErrorPolicy.CONTINUE,
        stop_reset_delay: float = STOP_RESET_DELAY,
        clock: Clock = time.monotonic,
        timer_factory: TimerFactory = _default_timer,
    ):
        self._queue = queue
        self._emit = emit
        self._send_realtime = send_realtime
        self._reset = reset
        self.error_policy = ErrorPolicy(error_policy)
        self.stop_reset_delay = float(stop_reset_delay)
        self._clock = clock
        self._timer_factory = timer_factory
        self._stop_timer: Any = None
        self._job = JobState()
        self._last_progress: JobProgress | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def job(self) -> JobState:
        return self._job

    @property
    def status(self) -> JobStatus:
        return self._job.status

    def is_active(self) -> bool:
        return self._job.status.is_active

    @property
    def reset_pending(self) -> bool:
        return self._stop_timer is not None

    @property
    def last_progress(self) -> JobProgress | None:
        return self._last_progress

    def progress(self) -> JobProgress:
        job = self._job
        total = job.total_lines
        current = job.cursor
        percent = (current / total * 100.0) if total else 0.0
        elapsed = 0.0
        if job.started_at is not None:
            end = job.finished_at if job.finished_at is not None else self._clock()
            elapsed = max(0.0, end - job.started_at)
        remaining = elapsed / current * (total - current) if current else math.nan
        if not math.isfinite(remaining):
            remaining = 0.0
        return JobProgress(
            current_line=current,
            total_lines=total,
            percent_complete=percent,
            elapsed_time=elapsed,
            estimated_remaining=remaining,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, lines: Iterable[str], *, name: str | None = None) -> None:
        """Load ``lines`` and begin streaming.

        Raises:
            GrblStreamingException: If a job is already running or paused, or a
                stopped job is still waiting for its soft reset
            GcodeValidationError: If no executable lines remain after cleaning
        """
        if self.is_active():
            raise GrblStreamingException("A job is already active")
        if self._stop_timer is not None:
            raise GrblStreamingException("Previous job is still being flushed")
        cleaned = clean_job_lines(lines)
        if not cleaned:
            raise GcodeValidationError("Job contains no executable lines")

        self._job = JobState(
            lines=cleaned,
            name=name,
            started_at=self._clock(),
            status=JobStatus.RUNNING,
        )
        self._last_progress = None
        logger.info(f"Job started: {len(cleaned)} lines" + (f" ({name})" if name else ""))
        self._set_status(JobStatus.RUNNING, None)
        self.pump()

    def pump(self) -> None:
        """Send job lines while there is room and lines remain."""
        job = self._job
        if not job.status.is_active:
            return
        cap = self._queue.max_in_flight
        while (
            job.cursor < job.total_lines
            and job.pending_in_queue < cap
            and self._queue.has_capacity()
        ):
            line = job.lines[job.cursor]
            self._queue.send(line, SOURCE_JOB)
            job.pending_in_queue += 1
            job.cursor += 1
            self._emit_progress()
        self._check_complete()

    def on_ack(self, ok: bool, code: int | None = None, message: str = "") -> None:
        """Account for the acknowledgement of one job line."""
        job = self._job
        if job.pending_in_queue > 0:
            job.pending_in_queue -= 1
        if not job.status.is_active:
            return
        if not ok:
            job.error_count += 1
            detail = f"line {self._error_line_number()}: {message or code}"
            if self.error_policy is ErrorPolicy.STOP:
                logger.error(f"Job failed on {detail}")
                self._halt(JobStatus.FAILED, detail)
                return
            if self.error_policy is ErrorPolicy.PAUSE and job.status is JobStatus.RUNNING:
                self.pause(reason=detail)
        self.pump()

    def pause(self, reason: str | None = None) -> bool:
        """Feed-hold the machine; queued lines keep flowing into the planner."""
        if self._job.status is not JobStatus.RUNNING:
            return False
        self._send_realtime(RT_HOLD)
        self._set_status(JobStatus.PAUSED, reason)
        logger.info(f"Job paused ({reason})" if reason else "Job paused")
        return True

    def resume(self) -> bool:
        if self._job.status is not JobStatus.PAUSED:
            return False
        self._send_realtime(RT_RESUME)
        self._set_status(JobStatus.RUNNING, None)
        logger.info("Job resumed")
        self.pump()
        return True

    def stop(self, reason: str | None = None) -> bool:
        """Cancel the job: hold now, soft reset shortly after."""
        if not self.is_active():
            return False
        self._halt(JobStatus.STOPPED, reason)
        logger.info(f"Job stopped ({reason})" if reason else "Job stopped")
        return True

    def abort(self, reason: str) -> bool:
        """Mark the job stopped without touching the wire (port already gone)."""
        self._cancel_stop_timer()
        if not self.is_active():
            return False
        self._finish(JobStatus.STOPPED, reason)
        logger.warning(f"Job aborted: {reason}")
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _halt(self, status: JobStatus, reason: str | None) -> None:
        self._finish(status, reason)
        self._queue.clear_backlog()
        self._send_realtime(RT_HOLD)
        self._cancel_stop_timer()
        self._stop_timer = self._timer_factory(self.stop_reset_delay, self._deliver_reset)
        self._stop_timer.start()

    def _deliver_reset(self) -> None:
        self._stop_timer = None
        self._reset()

    def _cancel_stop_timer(self) -> None:
        timer = self._stop_timer
        self._stop_timer = None
        if timer is not None:
            timer.cancel()

    def _finish(self, status: JobStatus, reason: str | None) -> None:
        job = self._job
        job.finished_at = self._clock()
        job.pending_in_queue = 0
        self._set_status(status, reason)

    def _check_complete(self) -> None:
        job = self._job
        if job.cursor >= job.total_lines and job.pending_in_queue == 0:
            job.finished_at = self._clock()
            self._set_status(JobStatus.COMPLETED, None)
            logger.info(
                f"Job completed: {job.total_lines} lines, {job.error_count} errors"
            )

    def _error_line_number(self) -> int:
        # Oldest unacknowledged job line, 1-based.
        job = self._job
        return job.cursor - job.pending_in_queue

    def _emit_progress(self) -> None:
        progress = self.progress()
        self._last_progress = progress
        self._emit(("progress", progress))

    def _set_status(self, status: JobStatus, detail: str | None) -> None:
        self._job.status = status
        self._emit(("job_state", status, detail))
