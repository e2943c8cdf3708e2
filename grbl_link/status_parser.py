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

"""Classification and decoding of GRBL response lines."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .types import BufferState, LineKind, MachineStatus, Overrides, Vector3
from .utils.grbl_errors import (
    annotate_grbl_alarm,
    annotate_grbl_error,
    is_alarm_message,
    parse_alarm_code,
    parse_error_code,
    parse_state_code,
)

logger = logging.getLogger(__name__)
_logged_suppressed: set[tuple[str, str]] = set()


def _log_suppressed(context: str, exc: BaseException) -> None:
    key = (context, type(exc).__name__)
    if key in _logged_suppressed:
        return
    _logged_suppressed.add(key)
    logger.debug("%s: %s", context, exc, exc_info=exc)


@dataclass(frozen=True, slots=True)
class ParsedLine:
    kind: LineKind
    raw: str
    status: MachineStatus | None = None
    code: int | None = None
    message: str = ""


@dataclass(slots=True)
class _StatusFields:
    state: str
    mpos: Vector3 | None = None
    wpos: Vector3 | None = None
    wco: Vector3 | None = None
    feed: float | None = None
    spindle: float | None = None
    buffer: BufferState | None = None
    ov: Overrides | None = None
    pins: str = ""


def _parse_floats(text: str) -> list[float]:
    values = []
    for item in text.split(","):
        item = item.strip()
        values.append(float(item) if item else 0.0)
    return values


def _parse_vector(text: str) -> Vector3:
    # Missing trailing fields read as zero (2-axis builds report X,Y only).
    coords = (_parse_floats(text) + [0.0, 0.0, 0.0])[:3]
    return Vector3(*coords)


def _parse_status_fields(raw: str) -> _StatusFields:
    parts = raw.strip()[1:-1].split("|")
    fields = _StatusFields(state=parts[0].strip() if parts else "")
    for part in parts[1:]:
        key, sep, value = part.partition(":")
        if not sep:
            continue
        try:
            if key == "MPos":
                fields.mpos = _parse_vector(value)
            elif key == "WPos":
                fields.wpos = _parse_vector(value)
            elif key == "WCO":
                fields.wco = _parse_vector(value)
            elif key == "Bf":
                planner, rx = value.split(",", 1)
                fields.buffer = BufferState(int(planner), int(rx))
            elif key == "FS":
                feed, spindle = value.split(",", 1)
                fields.feed = float(feed)
                fields.spindle = float(spindle)
            elif key == "F":
                fields.feed = float(value)
            elif key == "Ov":
                feed_ov, rapid_ov, spindle_ov = (int(v) for v in value.split(",")[:3])
                fields.ov = Overrides(feed_ov, rapid_ov, spindle_ov)
            elif key == "Pn":
                fields.pins = value
        except (TypeError, ValueError) as exc:
            _log_suppressed(f"Failed parsing {key} field from status line", exc)
    return fields


def is_status_line(line: str) -> bool:
    line = line.strip()
    return len(line) >= 2 and line.startswith("<") and line.endswith(">")


def _fmt(value: float) -> str:
    return f"{value:.3f}"


def format_status(status: MachineStatus) -> str:
    """Render ``status`` as a GRBL status report line (without CRLF)."""
    mpos = status.machine_position
    parts = [status.state, f"MPos:{_fmt(mpos.x)},{_fmt(mpos.y)},{_fmt(mpos.z)}"]
    if status.buffer is not None:
        parts.append(f"Bf:{status.buffer.planner},{status.buffer.rx}")
    parts.append(f"FS:{status.feed_rate:g},{status.spindle_speed:g}")
    if status.work_offset is not None:
        wco = status.work_offset
        parts.append(f"WCO:{_fmt(wco.x)},{_fmt(wco.y)},{_fmt(wco.z)}")
    ov = status.overrides
    parts.append(f"Ov:{ov.feed},{ov.rapid},{ov.spindle}")
    if status.pins:
        parts.append(f"Pn:{status.pins}")
    return "<" + "|".join(parts) + ">"


class StatusParser:
    """Stateful line classifier.

    Keeps the last reported work coordinate offset (GRBL only includes
    ``WCO`` every few reports) and the previous snapshot, which supplies the
    spindle speed when a report carries ``F`` without ``FS``.
    """

    def __init__(self) -> None:
        self._wco: Vector3 | None = None
        self._last: MachineStatus | None = None

    @property
    def last_status(self) -> MachineStatus | None:
        return self._last

    def reset(self) -> None:
        self._wco = None
        self._last = None

    def parse(self, line: str | bytes) -> ParsedLine:
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        text = line.strip()
        lower = text.lower()

        if is_status_line(text):
            status = self.parse_status(text)
            return ParsedLine(LineKind.STATUS, text, status=status)
        if lower == "ok":
            return ParsedLine(LineKind.OK, text)
        if lower.startswith("error:"):
            code = parse_error_code(text)
            return ParsedLine(LineKind.ERROR, text, code=code, message=annotate_grbl_error(text))
        if lower.startswith("alarm:"):
            code = parse_alarm_code(text)
            return ParsedLine(LineKind.ALARM, text, code=code, message=annotate_grbl_alarm(text))
        if is_alarm_message(text):
            return ParsedLine(LineKind.ALARM, text, message=text)
        if (text.startswith("[") and text.endswith("]")) or lower.startswith("grbl"):
            return ParsedLine(LineKind.INFO, text, message=text)
        return ParsedLine(LineKind.UNCLASSIFIED, text, message=text)

    def parse_status(self, line: str) -> MachineStatus:
        """Decode one ``<...>`` report into a fresh snapshot."""
        fields = _parse_status_fields(line)
        if fields.wco is not None:
            self._wco = fields.wco
        offset = self._wco if self._wco is not None else Vector3()

        if fields.mpos is not None:
            mpos = fields.mpos
            wpos = fields.wpos if fields.wpos is not None else mpos - offset
        elif fields.wpos is not None:
            wpos = fields.wpos
            mpos = wpos + offset
        else:
            mpos = wpos = Vector3()

        spindle = fields.spindle
        if spindle is None:
            spindle = self._last.spindle_speed if self._last is not None else 0.0

        status = MachineStatus(
            state=fields.state,
            alarm_code=parse_state_code(fields.state),
            machine_position=mpos,
            work_position=wpos,
            feed_rate=fields.feed if fields.feed is not None else 0.0,
            spindle_speed=spindle,
            buffer=fields.buffer,
            overrides=fields.ov if fields.ov is not None else Overrides(),
            pins=fields.pins,
            work_offset=self._wco,
        )
        self._last = status
        return status
