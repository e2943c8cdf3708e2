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

"""Feed, rapid and spindle overrides.

GRBL only accepts overrides as single real-time bytes: coarse +10 / -10
steps and a reset to 100% for feed and spindle, and three fixed levels for
rapids. A requested percentage is translated into the byte sequence that
moves the controller from its current value to the target.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

from .types import Overrides
from .utils.constants import (
    OVERRIDE_MAX,
    OVERRIDE_MIN,
    OVERRIDE_STEP,
    RAPID_OVERRIDE_LEVELS,
    RT_FO_MINUS_10,
    RT_FO_PLUS_10,
    RT_FO_RESET,
    RT_SO_MINUS_10,
    RT_SO_PLUS_10,
    RT_SO_RESET,
)
from .utils.exceptions import InvalidParameterError
from .utils.validation import validate_override_percent

logger = logging.getLogger(__name__)


def override_steps(
    target: float,
    current: float,
    plus_cmd: bytes,
    minus_cmd: bytes,
    reset_cmd: bytes,
) -> list[bytes]:
    """Return the real-time bytes that move ``current`` to ``target``.

    100% is always reached with the single reset byte. Other targets use
    ``ceil(|target - current| / 10)`` coarse steps in the needed direction.
    """
    if target == 100:
        return [reset_cmd]
    delta = target - current
    if delta == 0:
        return []
    count = math.ceil(abs(delta) / OVERRIDE_STEP)
    return [plus_cmd if delta > 0 else minus_cmd] * count


def _resulting_percent(target: float, current: float, count: int) -> int:
    # Coarse steps overshoot a target that is not a multiple of 10.
    if target == 100:
        return 100
    moved = current + (count * OVERRIDE_STEP if target > current else -count * OVERRIDE_STEP)
    return int(max(OVERRIDE_MIN, min(OVERRIDE_MAX, moved)))


class OverrideController:
    """Translates override targets into bytes written by ``send_realtime``.

    ``current`` values come from the latest status report; a target that was
    just requested stands in until the next report arrives.
    """

    def __init__(self, send_realtime: Callable[[bytes], None]):
        self._send_realtime = send_realtime
        self._current = Overrides()

    @property
    def current(self) -> Overrides:
        return self._current

    def update_from_status(self, overrides: Overrides | None) -> None:
        self._current = overrides if overrides is not None else Overrides()

    def set_feed(self, percent: float) -> list[bytes]:
        target = validate_override_percent(percent, "feed_override")
        steps = override_steps(
            target, self._current.feed, RT_FO_PLUS_10, RT_FO_MINUS_10, RT_FO_RESET
        )
        self._write(steps)
        feed = _resulting_percent(target, self._current.feed, len(steps))
        self._current = Overrides(feed, self._current.rapid, self._current.spindle)
        logger.debug(f"Feed override -> {target:g}% ({len(steps)} bytes)")
        return steps

    def set_spindle(self, percent: float) -> list[bytes]:
        target = validate_override_percent(percent, "spindle_override")
        steps = override_steps(
            target, self._current.spindle, RT_SO_PLUS_10, RT_SO_MINUS_10, RT_SO_RESET
        )
        self._write(steps)
        spindle = _resulting_percent(target, self._current.spindle, len(steps))
        self._current = Overrides(self._current.feed, self._current.rapid, spindle)
        logger.debug(f"Spindle override -> {target:g}% ({len(steps)} bytes)")
        return steps

    def set_rapid(self, percent: float) -> list[bytes]:
        try:
            level = int(percent)
        except (TypeError, ValueError):
            raise InvalidParameterError("rapid_override", percent, "must be 25, 50 or 100")
        if level != percent or level not in RAPID_OVERRIDE_LEVELS:
            raise InvalidParameterError("rapid_override", percent, "must be 25, 50 or 100")
        steps = [RAPID_OVERRIDE_LEVELS[level]]
        self._write(steps)
        self._current = Overrides(self._current.feed, level, self._current.spindle)
        logger.debug(f"Rapid override -> {level}%")
        return steps

    def reset_all(self) -> list[bytes]:
        steps = [RT_FO_RESET, RAPID_OVERRIDE_LEVELS[100], RT_SO_RESET]
        self._write(steps)
        self._current = Overrides()
        return steps

    def _write(self, steps: list[bytes]) -> None:
        for cmd in steps:
            self._send_realtime(cmd)
