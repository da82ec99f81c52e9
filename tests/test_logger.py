"""
Unit Tests for Logging Setup

Author: Scheduled Copy Project
License: MIT
"""

import json
import logging
import pytest

from scheduled_copy.utils.logger import ROOT_LOGGER_NAME, get_logger, setup_logging


@pytest.fixture(autouse=True)
def reset_root_logger():
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


class TestGetLogger:
    """Test suite for logger naming."""

    def test_module_names_not_prefixed_twice(self):
        assert get_logger("scheduled_copy.sync_engine.copy_executor").name == \
            "scheduled_copy.sync_engine.copy_executor"

    def test_foreign_names_prefixed(self):
        assert get_logger("plugins").name == "scheduled_copy.plugins"


class TestSetupLogging:
    """Test suite for handler configuration."""

    def test_level_applied(self):
        logger = setup_logging(log_level="warning")

        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging()
        logger = setup_logging()

        assert len(logger.handlers) == 1

    def test_json_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        setup_logging(log_to_file=True, log_file_path=str(log_file), json_format=True)

        get_logger("scheduled_copy.test").info("hello", extra={"task_id": "abc"})
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()

        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["message"] == "hello"
        assert record["task_id"] == "abc"
        assert record["levelname"] == "INFO"

    def test_plain_file_has_no_color_codes(self, tmp_path):
        log_file = tmp_path / "app.log"
        setup_logging(log_to_file=True, log_file_path=str(log_file))

        get_logger("scheduled_copy.test").error("bad thing")
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()

        text = log_file.read_text()
        assert "bad thing" in text
        assert "\033[" not in text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
