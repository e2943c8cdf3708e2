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

"""Byte-stream to line framing.

Serial reads arrive in arbitrary chunks; a status report may be split across
several reads or several replies may arrive in one. ``LineFramer`` buffers
bytes until a delimiter shows up and hands back whole lines.
"""

from __future__ import annotations

from .utils.constants import LINE_DELIMITER


class LineFramer:
    def __init__(self, delimiter: bytes = LINE_DELIMITER):
        if not delimiter:
            raise ValueError("delimiter must be non-empty")
        self._delimiter = bytes(delimiter)
        self._buf = bytearray()

    @property
    def delimiter(self) -> bytes:
        return self._delimiter

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet terminated by a delimiter."""
        return bytes(self._buf)

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append ``chunk`` and return every complete line it finished.

        Lines are returned without the delimiter, in arrival order. Empty
        lines (two delimiters back to back) are returned as ``b""``.
        """
        if not chunk:
            return []
        self._buf.extend(chunk)
        lines: list[bytes] = []
        delim = self._delimiter
        start = 0
        while True:
            idx = self._buf.find(delim, start)
            if idx < 0:
                break
            lines.append(bytes(self._buf[start:idx]))
            start = idx + len(delim)
        if start:
            del self._buf[:start]
        return lines

    def flush(self) -> bytes | None:
        """Return leftover bytes as a final partial line, or None if empty."""
        if not self._buf:
            return None
        tail = bytes(self._buf)
        self._buf.clear()
        return tail

    def reset(self) -> None:
        self._buf.clear()
