import logging
import logging.handlers

import pytest

from src.application_tracker import logging_config
from src.application_tracker.logging_config import CONSOLE_HANDLER, FILE_HANDLER, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def no_env_overrides(monkeypatch, root_logging):
    monkeypatch.delenv("APPTRACK_LOG_LEVEL", raising=False)
    monkeypatch.delenv("APPTRACK_LOG_FILE", raising=False)


def ours(root):
    return [h for h in root.handlers if h.get_name() in (CONSOLE_HANDLER, FILE_HANDLER)]


def test_level_defaults_to_info():
    assert resolve_level() == logging.INFO


def test_level_precedence(monkeypatch):
    app = {"log_level": "warning"}
    assert resolve_level(None, app) == logging.WARNING
    monkeypatch.setenv("APPTRACK_LOG_LEVEL", "ERROR")
    assert resolve_level(None, app) == logging.ERROR
    assert resolve_level("debug", app) == logging.DEBUG


def test_unknown_level_raises():
    with pytest.raises(ValueError):
        resolve_level("chatty")


def test_repeated_setup_replaces_handlers(root_logging):
    setup_logging("INFO")
    setup_logging("DEBUG")
    assert [h.get_name() for h in ours(root_logging)] == [CONSOLE_HANDLER]
    assert root_logging.level == logging.DEBUG


def test_setup_leaves_foreign_handlers(root_logging):
    other = logging.NullHandler()
    root_logging.addHandler(other)
    setup_logging()
    setup_logging()
    assert other in root_logging.handlers


def test_log_file_from_app_settings_rotates_daily(root_logging, tmp_path):
    path = tmp_path / "logs" / "tracker.log"
    setup_logging(app={"log_level": "INFO", "log_file": str(path), "log_backup_days": 3})
    file_handlers = [h for h in ours(root_logging) if h.get_name() == FILE_HANDLER]
    assert len(file_handlers) == 1
    handler = file_handlers[0]
    assert isinstance(handler, logging.handlers.TimedRotatingFileHandler)
    assert handler.when == "MIDNIGHT"
    assert handler.backupCount == 3

    logging.getLogger("src.application_tracker.reconciler").info("Scan complete")
    handler.flush()
    assert "[INFO] src.application_tracker.reconciler: Scan complete" in path.read_text(encoding="utf-8")


def test_noisy_libraries_are_quietened(root_logging):
    setup_logging("DEBUG")
    for name, level in logging_config.NOISY_LOGGERS.items():
        assert logging.getLogger(name).level == level
