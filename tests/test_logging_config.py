import logging

import pytest

from grbl_link.utils.logging_config import APP_LOGGER_NAME, SERIAL_LOGGER_NAME, setup_logging


@pytest.fixture
def clean_loggers():
    yield
    logging.getLogger(APP_LOGGER_NAME).propagate = True
    for name in (APP_LOGGER_NAME, SERIAL_LOGGER_NAME):
        log = logging.getLogger(name)
        for handler in list(log.handlers):
            if (handler.get_name() or "").startswith("grbl_link_"):
                log.removeHandler(handler)
                handler.close()


def test_setup_creates_log_files_once(tmp_path, clean_loggers):
    root = setup_logging(tmp_path)
    count = len(root.handlers)
    setup_logging(tmp_path)
    assert len(root.handlers) == count

    logging.getLogger("grbl_link.engine").warning("something odd")
    logging.getLogger(SERIAL_LOGGER_NAME).debug("TX G0 X0")
    for handler in root.handlers + logging.getLogger(SERIAL_LOGGER_NAME).handlers:
        handler.flush()

    assert "something odd" in (tmp_path / "grbl_link.log").read_text()
    assert "something odd" in (tmp_path / "errors.log").read_text()
    assert "TX G0 X0" in (tmp_path / "serial.log").read_text()
