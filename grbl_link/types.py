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

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from .command_queue import FlowControlledQueue
    from .events import EventStream
    from .framer import LineFramer
    from .job_streamer import JobStreamer
    from .overrides import OverrideController
    from .ports import PortWatcher
    from .status_parser import StatusParser
    from .status_poller import StatusPoller
    from .transport import SerialTransport
    from .utils.config import Settings


@dataclass(frozen=True, slots=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __sub__(self, other: Vector3) -> Vector3:
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __add__(self, other: Vector3) -> Vector3:
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)


@dataclass(frozen=True, slots=True)
class BufferState:
    """Planner blocks and RX bytes free, as last reported (advisory only)."""
    planner: int = 0
    rx: int = 0


@dataclass(frozen=True, slots=True)
class Overrides:
    feed: int = 100
    rapid: int = 100
    spindle: int = 100


@dataclass(frozen=True, slots=True)
class MachineStatus:
    """One decoded status report.

    ``state`` keeps the firmware text verbatim (``Idle``, ``Hold:0``,
    ``Alarm``); ``alarm_code`` carries the sub-state after the colon when
    there is one. ``work_offset`` is the offset in effect for this report,
    either reported or carried over from an earlier one.
    """
    state: str
    alarm_code: int | None = None
    machine_position: Vector3 = Vector3()
    work_position: Vector3 = Vector3()
    feed_rate: float = 0.0
    spindle_speed: float = 0.0
    buffer: BufferState | None = None
    overrides: Overrides = Overrides()
    pins: str = ""
    work_offset: Vector3 | None = None

    @property
    def state_name(self) -> str:
        return self.state.split(":", 1)[0]

    @property
    def is_alarm(self) -> bool:
        return self.state_name.lower() == "alarm"


@dataclass(frozen=True, slots=True)
class ConnectionHandle:
    port: str
    baud: int
    opened_at: float = 0.0


@dataclass(frozen=True, slots=True)
class PortInfo:
    device: str
    description: str = ""
    manufacturer: str | None = None
    serial_number: str | None = None
    vid: int | None = None
    pid: int | None = None


@dataclass(frozen=True, slots=True)
class JobProgress:
    current_line: int
    total_lines: int
    percent_complete: float
    elapsed_time: float
    estimated_remaining: float


class JobStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.RUNNING, JobStatus.PAUSED)


class ErrorPolicy(str, Enum):
    """What a running job does when the firmware answers ``error:N``."""
    CONTINUE = "continue"
    PAUSE = "pause"
    STOP = "stop"


class LineKind(str, Enum):
    STATUS = "status"
    OK = "ok"
    ERROR = "error"
    ALARM = "alarm"
    INFO = "info"
    UNCLASSIFIED = "unclassified"


@dataclass(slots=True)
class JobState:
    lines: tuple[str, ...] = ()
    name: str | None = None
    cursor: int = 0
    pending_in_queue: int = 0
    started_at: float | None = None
    finished_at: float | None = None
    status: JobStatus = JobStatus.IDLE
    error_count: int = 0

    @property
    def total_lines(self) -> int:
        return len(self.lines)


EngineEvent: TypeAlias = (
    tuple[Literal["conn"], bool, str | None]
    | tuple[Literal["ready"], bool]
    | tuple[Literal["status"], MachineStatus]
    | tuple[Literal["progress"], JobProgress]
    | tuple[Literal["job_state"], JobStatus, str | None]
    | tuple[Literal["error"], int | None, str]
    | tuple[Literal["alarm"], int | None, str]
    | tuple[Literal["log"], str]
    | tuple[Literal["log_tx"], str]
    | tuple[Literal["unclassified"], str]
    | tuple[Literal["disconnect"], str]
    | tuple[Literal["ports"], list[PortInfo]]
)


class EngineState:
    settings: Settings | None
    events: EventStream
    _config: dict[str, Any]
    _lock: threading.RLock

    _handle: ConnectionHandle | None
    _ready: bool
    _alarm_active: bool
    _status: MachineStatus | None
    _port_watcher: PortWatcher | None

    _framer: LineFramer
    _parser: StatusParser
    _transport: SerialTransport
    _queue: FlowControlledQueue
    _streamer: JobStreamer
    _overrides: OverrideController
    _poller: StatusPoller

    def is_connected(self) -> bool:
        raise NotImplementedError

    def disconnect(self) -> None:
        raise NotImplementedError

    def send(self, line: str) -> bool:
        raise NotImplementedError

    def send_realtime(self, command: bytes) -> None:
        raise NotImplementedError

    def _emit(self, event: Any) -> None:
        raise NotImplementedError

    def _write_raw(self, data: bytes) -> bool:
        raise NotImplementedError

    def _signal_disconnect(self, reason: str | None = None) -> None:
        raise NotImplementedError

    def _on_rx_data(self, chunk: bytes) -> None:
        raise NotImplementedError

    def _flush_rx_tail(self) -> None:
        raise NotImplementedError

    def _deliver_stop_reset(self) -> None:
        raise NotImplementedError
