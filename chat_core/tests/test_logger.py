import json
import logging

import pytest

from chat_core.domain.exceptions import ConfigError
from chat_core.infrastructure.logging.logger import LOG_FILE, log_event, logger, logging_ready, setup_logger


class SettingsStub:
    def __init__(self, log_dir, log_redact_content=False):
        self.log_dir = str(log_dir)
        self.log_redact_content = log_redact_content


@pytest.fixture(autouse=True)
def _restore_handlers(monkeypatch):
    monkeypatch.setattr(logger, "handlers", [])
    monkeypatch.setattr(logger, "propagate", logger.propagate)
    yield
    for handler in list(logger.handlers):
        handler.close()


def test_log_lines_are_json(tmp_path):
    setup_logger(SettingsStub(tmp_path / "logs"))
    assert logging_ready()
    log_event(logging.INFO, "Token usage", {"turn_id": "t-1"}, total_tokens=7)
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / "logs" / LOG_FILE).read_text(encoding="utf-8").strip().splitlines()[-1]
    record = json.loads(line)
    assert record["msg"] == "Token usage"
    assert record["turn_id"] == "t-1"
    assert record["total_tokens"] == 7


def test_setup_twice_keeps_one_handler(tmp_path):
    setup_logger(SettingsStub(tmp_path))
    setup_logger(SettingsStub(tmp_path))
    assert len(logger.handlers) == 1


def test_unwritable_log_dir_is_config_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(ConfigError) as exc_info:
        setup_logger(SettingsStub(blocker))
    assert exc_info.value.code == "LOG_SETUP_ERROR"
    assert not logging_ready()
