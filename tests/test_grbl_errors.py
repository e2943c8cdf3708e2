import pytest

from grbl_link.utils.grbl_errors import (
    annotate_grbl_alarm,
    annotate_grbl_error,
    get_grbl_alarm_description,
    get_grbl_error_description,
    is_alarm_message,
    parse_alarm_code,
    parse_error_code,
    parse_state_code,
)


@pytest.mark.parametrize(
    "line, code",
    [("error:9", 9), ("ERROR: 22", 22), ("error:", None), ("ok", None)],
)
def test_parse_error_code(line, code):
    assert parse_error_code(line) == code


def test_parse_alarm_code():
    assert parse_alarm_code("ALARM:3") == 3
    assert parse_alarm_code("ALARM:x") is None


@pytest.mark.parametrize(
    "state, code",
    [("Hold:0", 0), ("Door:2", 2), ("Idle", None), ("Alarm", None)],
)
def test_parse_state_code(state, code):
    assert parse_state_code(state) == code


def test_descriptions():
    assert get_grbl_error_description(9).startswith("G-code lock")
    assert get_grbl_alarm_description(1).startswith("Hard limit")
    assert get_grbl_error_description(None) is None
    assert get_grbl_error_description(999) is None


def test_annotation():
    assert annotate_grbl_error("error:20") == "error:20 (Unsupported command (invalid/unsupported g-code).)"
    assert annotate_grbl_alarm("ALARM:99") == "ALARM:99"


def test_reset_to_continue_is_alarm_message():
    assert is_alarm_message("[MSG:Reset to continue]")
    assert not is_alarm_message("[MSG:Caution: Unlocked]")
    assert not is_alarm_message("Reset to continue")
