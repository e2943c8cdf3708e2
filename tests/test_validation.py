import math

import pytest

from grbl_link.utils.exceptions import InvalidParameterError, InvalidRangeError
from grbl_link.utils.validation import (
    validate_axis,
    validate_baud_rate,
    validate_distance,
    validate_feed_rate,
    validate_interval,
    validate_max_in_flight,
    validate_override_percent,
    validate_port_name,
)


def test_feed_rate():
    assert validate_feed_rate("250") == 250.0
    for bad in (0, -1, math.inf, "fast", None):
        with pytest.raises(InvalidParameterError):
            validate_feed_rate(bad)


def test_distance_allows_negative_but_not_nan():
    assert validate_distance(-2.5) == -2.5
    with pytest.raises(InvalidParameterError):
        validate_distance(math.nan)


def test_axis():
    assert validate_axis(" y ") == "Y"
    assert validate_axis("all", allow_all=True) == "ALL"
    with pytest.raises(InvalidParameterError):
        validate_axis("all")
    with pytest.raises(InvalidParameterError):
        validate_axis("A")


def test_port_and_baud():
    assert validate_port_name(" COM3 ") == "COM3"
    assert validate_baud_rate("115200") == 115200
    with pytest.raises(InvalidParameterError):
        validate_port_name("   ")
    with pytest.raises(InvalidParameterError):
        validate_baud_rate(14400)


def test_interval():
    assert validate_interval(0.5, min_val=0.01) == 0.5
    with pytest.raises(InvalidParameterError):
        validate_interval(-1)


def test_max_in_flight():
    assert validate_max_in_flight(4) == 4
    with pytest.raises(InvalidRangeError):
        validate_max_in_flight(33)


def test_override_percent():
    assert validate_override_percent(10, "feed") == 10
    with pytest.raises(InvalidRangeError):
        validate_override_percent(9, "feed")
    with pytest.raises(InvalidParameterError):
        validate_override_percent(math.nan, "feed")
