import json

import pytest

from grbl_link.utils.config import (
    CONFIG_DIR_ENV,
    DEFAULT_SETTINGS,
    Settings,
    get_default_settings_dir,
    get_settings_path,
)
from grbl_link.utils.exceptions import SettingsLoadError, SettingsValidationError


def test_defaults(tmp_path):
    s = Settings(str(tmp_path / "s.json"))
    assert s.get("baud_rate") == 115200
    assert s.get("status_poll_interval") == 0.1
    assert s.get("max_in_flight") == 4
    assert s.get("error_policy") == "continue"
    assert s.validate()


def test_missing_file_keeps_defaults(tmp_path):
    s = Settings(str(tmp_path / "missing.json"))
    assert s.load() is False
    assert s.data == DEFAULT_SETTINGS


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "s.json"
    s = Settings(str(path))
    s.set("last_port", "COM7")
    s.set("max_in_flight", 8)
    s.save()
    loaded = Settings(str(path))
    assert loaded.load()
    assert loaded.get("last_port") == "COM7"
    assert loaded.get("max_in_flight") == 8
    assert loaded.get("baud_rate") == 115200


def test_second_save_keeps_backup(tmp_path):
    path = tmp_path / "s.json"
    s = Settings(str(path))
    s.save()
    s.set("last_port", "/dev/ttyUSB3")
    s.save()
    backup = json.loads((tmp_path / "s.json.bak").read_text())
    assert backup["last_port"] == ""
    assert not (tmp_path / "s.json.tmp").exists()


def test_partial_file_is_merged_with_defaults(tmp_path):
    path = tmp_path / "s.json"
    path.write_text(json.dumps({"baud_rate": 57600}))
    s = Settings(str(path))
    s.load()
    assert s.get("baud_rate") == 57600
    assert s.get("stop_reset_delay") == 0.1


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_bad_file_raises(tmp_path, content):
    path = tmp_path / "s.json"
    path.write_text(content)
    with pytest.raises(SettingsLoadError):
        Settings(str(path)).load()


def test_dot_notation(tmp_path):
    s = Settings(str(tmp_path / "s.json"))
    s.set("profiles.router.baud_rate", 230400)
    assert s.get("profiles.router.baud_rate") == 230400
    assert s.get("profiles.missing.key", "x") == "x"


@pytest.mark.parametrize(
    "key, value",
    [
        ("baud_rate", 1200),
        ("status_poll_interval", 0),
        ("stop_reset_delay", "soon"),
        ("max_in_flight", 0),
        ("max_in_flight", 4.5),
        ("status_query_failure_limit", 0),
        ("error_policy", "retry"),
    ],
)
def test_validation_failures(tmp_path, key, value):
    s = Settings(str(tmp_path / "s.json"))
    s.set(key, value)
    with pytest.raises(SettingsValidationError):
        s.validate()


def test_reset_to_defaults(tmp_path):
    s = Settings(str(tmp_path / "s.json"))
    s.set("baud_rate", 9600)
    s.reset_to_defaults()
    assert s.get("baud_rate") == 115200


def test_config_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path / "cfg"))
    assert get_default_settings_dir() == str(tmp_path / "cfg")
    path = get_settings_path()
    assert path.startswith(str(tmp_path / "cfg"))
    assert (tmp_path / "cfg").is_dir()
