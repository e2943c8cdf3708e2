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

"""Constants and configuration values for GRBL Link.

This module centralizes the wire bytes, protocol limits and default timings
used by the protocol engine.
"""

# ============================================================================
# SERIAL COMMUNICATION CONSTANTS
# ============================================================================

BAUD_DEFAULT = 115200
"""Default baud rate for GRBL serial communication."""

VALID_BAUD_RATES = (9600, 19200, 38400, 57600, 115200, 230400)
"""Baud rates accepted by connect()."""

SERIAL_TIMEOUT = 0.1
"""Read timeout (seconds) for the RX thread."""

SERIAL_WRITE_TIMEOUT = 1.0
"""Write timeout (seconds) before a write is treated as a fault."""

SERIAL_READ_CHUNK = 256
"""Maximum bytes pulled from the port per read."""

THREAD_JOIN_TIMEOUT = 1.0
"""Seconds to wait for a worker thread to finish on shutdown."""

LINE_DELIMITER = b"\r\n"
"""Line terminator GRBL uses for everything it sends."""

COMMAND_TERMINATOR = "\n"
"""Line terminator appended to outbound command lines."""

# ============================================================================
# STATUS POLLING
# ============================================================================

STATUS_POLL_DEFAULT = 0.1
"""Default interval (seconds) between status queries."""

STATUS_POLL_INTERVAL_MIN = 0.01
"""Minimum allowed status poll interval (seconds)."""

STATUS_QUERY_FAILURE_LIMIT_DEFAULT = 3
"""Default status query failure limit before disconnect."""

STATUS_QUERY_FAILURE_LIMIT_MIN = 1
"""Minimum allowed status query failure limit."""

STATUS_QUERY_FAILURE_LIMIT_MAX = 10
"""Maximum allowed status query failure limit."""

STATUS_QUERY_BACKOFF_BASE = 0.2
"""Backoff step (seconds) after a failed status query."""

STATUS_QUERY_BACKOFF_MAX = 2.0
"""Upper bound (seconds) for the status query backoff."""

# ============================================================================
# FLOW CONTROL
# ============================================================================

MAX_IN_FLIGHT_DEFAULT = 4
"""Commands allowed on the wire without an acknowledgement."""

MAX_IN_FLIGHT_LIMIT = 32
"""Upper bound accepted for the in-flight cap."""

STOP_RESET_DELAY = 0.1
"""Seconds between the feed hold and the soft reset when a job is stopped."""

# ============================================================================
# PORT DISCOVERY
# ============================================================================

PORT_SCAN_INTERVAL = 2.0
"""Seconds between port list scans for hot-plug detection."""

# ============================================================================
# GRBL REAL-TIME COMMAND BYTES
# ============================================================================

RT_RESET = b"\x18"
"""Ctrl-X soft reset."""

RT_STATUS = b"?"
"""Status report query."""

RT_HOLD = b"!"
"""Feed hold (pause)."""

RT_RESUME = b"~"
"""Cycle start / resume."""

RT_JOG_CANCEL = b"\x85"
"""Cancel jog command."""

# Feed override commands
RT_FO_RESET = b"\x90"
RT_FO_PLUS_10 = b"\x91"
RT_FO_MINUS_10 = b"\x92"

# Rapid override commands
RT_RO_100 = b"\x95"
RT_RO_50 = b"\x96"
RT_RO_25 = b"\x97"

# Spindle override commands
RT_SO_RESET = b"\x99"
RT_SO_PLUS_10 = b"\x9A"
RT_SO_MINUS_10 = b"\x9B"

OVERRIDE_STEP = 10
"""Percent applied by a single coarse override step."""

OVERRIDE_MIN = 10
"""Lowest feed/spindle override GRBL accepts."""

OVERRIDE_MAX = 200
"""Highest feed/spindle override GRBL accepts."""

RAPID_OVERRIDE_LEVELS = {
    100: RT_RO_100,
    50: RT_RO_50,
    25: RT_RO_25,
}
"""The only rapid override values GRBL supports."""

# ============================================================================
# G-CODE
# ============================================================================

COMMENT_PREFIXES = (";", "(")
"""Prefixes marking a full-line comment in job input."""

AXES = ("X", "Y", "Z")
"""Axes addressed by jog, zero and go-to-zero commands."""
