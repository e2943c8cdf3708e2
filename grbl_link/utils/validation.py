"""Validation utilities for GRBL Link.

This module provides validation functions for the values callers hand to the
engine, so bad input is rejected before anything reaches the wire.
"""

import math

from .constants import (
    AXES,
    MAX_IN_FLIGHT_LIMIT,
    OVERRIDE_MAX,
    OVERRIDE_MIN,
    VALID_BAUD_RATES,
)
from .exceptions import InvalidParameterError, InvalidRangeError


def validate_feed_rate(feed: float) -> float:
    """Validate feed rate value.

    Args:
        feed: Feed rate in mm/min or inches/min

    Returns:
        The validated feed rate

    Raises:
        InvalidParameterError: If feed rate is invalid
    """
    try:
        feed = float(feed)
    except (TypeError, ValueError):
        raise InvalidParameterError("feed_rate", feed, "must be numeric")

    if not math.isfinite(feed) or feed <= 0:
        raise InvalidParameterError("feed_rate", feed, "must be positive")

    return feed


def validate_distance(distance: float) -> float:
    """Validate a jog distance (any finite number)."""
    try:
        distance = float(distance)
    except (TypeError, ValueError):
        raise InvalidParameterError("distance", distance, "must be numeric")

    if not math.isfinite(distance):
        raise InvalidParameterError("distance", distance, "must be finite")

    return distance


def validate_axis(axis: str, *, allow_all: bool = False) -> str:
    """Validate an axis name.

    Args:
        axis: Axis letter ("x", "Y", ...) or "all" when allowed
        allow_all: Accept "all" as a shorthand for every axis

    Returns:
        The upper-cased axis name

    Raises:
        InvalidParameterError: If the axis is unknown
    """
    if not isinstance(axis, str) or not axis.strip():
        raise InvalidParameterError("axis", axis, "must be non-empty string")

    axis = axis.strip().upper()
    if allow_all and axis == "ALL":
        return axis
    if axis not in AXES:
        raise InvalidParameterError("axis", axis, f"must be one of {list(AXES)}")

    return axis


def validate_port_name(port: str) -> str:
    """Validate serial port name.

    Args:
        port: Serial port name (e.g., "COM3" or "/dev/ttyUSB0")

    Returns:
        The validated port name

    Raises:
        InvalidParameterError: If port name is invalid
    """
    if not port or not isinstance(port, str):
        raise InvalidParameterError("port", port, "must be non-empty string")

    port = port.strip()
    if not port:
        raise InvalidParameterError("port", port, "must be non-empty")

    return port


def validate_baud_rate(baud: int) -> int:
    """Validate baud rate.

    Args:
        baud: Baud rate value

    Returns:
        The validated baud rate

    Raises:
        InvalidParameterError: If baud rate is invalid
    """
    try:
        baud = int(baud)
    except (TypeError, ValueError):
        raise InvalidParameterError("baud_rate", baud, "must be integer")

    if baud not in VALID_BAUD_RATES:
        raise InvalidParameterError(
            "baud_rate",
            baud,
            f"must be one of {list(VALID_BAUD_RATES)}"
        )

    return baud


def validate_interval(interval: float, min_val: float = 0.0) -> float:
    """Validate time interval.

    Args:
        interval: Time interval in seconds
        min_val: Minimum allowed value (default 0.0)

    Returns:
        The validated interval

    Raises:
        InvalidParameterError: If interval is invalid
    """
    try:
        interval = float(interval)
    except (TypeError, ValueError):
        raise InvalidParameterError("interval", interval, "must be numeric")

    if not math.isfinite(interval) or interval < min_val:
        raise InvalidParameterError(
            "interval",
            interval,
            f"must be >= {min_val}"
        )

    return interval


def validate_max_in_flight(limit: int) -> int:
    """Validate the flow-control cap.

    Raises:
        InvalidParameterError: If the value is not an integer
        InvalidRangeError: If the value is outside 1..MAX_IN_FLIGHT_LIMIT
    """
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        raise InvalidParameterError("max_in_flight", limit, "must be integer")

    if not (1 <= limit <= MAX_IN_FLIGHT_LIMIT):
        raise InvalidRangeError(limit, 1, MAX_IN_FLIGHT_LIMIT)

    return limit


def validate_override_percent(
    value: float,
    name: str,
    min_val: int = OVERRIDE_MIN,
    max_val: int = OVERRIDE_MAX,
) -> float:
    """Validate a feed or spindle override target.

    Args:
        value: Requested percentage
        name: Parameter name for error messages
        min_val: Lowest accepted percentage
        max_val: Highest accepted percentage

    Returns:
        The validated percentage

    Raises:
        InvalidParameterError: If the value is not numeric
        InvalidRangeError: If the value is out of range
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(name, value, "must be numeric")

    if not math.isfinite(value):
        raise InvalidParameterError(name, value, "must be finite")

    if not (min_val <= value <= max_val):
        raise InvalidRangeError(value, min_val, max_val)

    return value
