from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Iterator

import pytest
from rich.logging import RichHandler

from guild_settings import constants, log


@pytest.fixture()
def root_logger() -> Iterator[logging.Logger]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def configure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, **env: str) -> Path:
    log_file = tmp_path / "logs" / "settings.log"
    monitoring = constants.MonitoringCls(SETTINGS_LOG_FILE=str(log_file), **env)
    monkeypatch.setattr(constants, "Monitoring", monitoring, raising=False)
    return log_file


def test_get_logger_provides_trace() -> None:
    logger = log.get_logger("guild_settings.tests.trace")
    assert isinstance(logger, log.SettingsLogger)
    assert logging.getLevelName(log.TRACE) == "TRACE"


def test_trace_is_emitted_at_trace_level(caplog: pytest.LogCaptureFixture) -> None:
    logger = log.get_logger("guild_settings.tests.emit")
    with caplog.at_level(log.TRACE, logger="guild_settings.tests.emit"):
        logger.trace("walked %d entries", 3)
    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [(log.TRACE, "walked 3 entries")]


def test_setup(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, root_logger: logging.Logger) -> None:
    trace_loggers = "guild_settings.tests.a, guild_settings.tests.b"
    log_file = configure(monkeypatch, tmp_path, LOG_DEBUG="false", SETTINGS_TRACE_LOGGERS=trace_loggers)

    log.setup()

    assert log_file.exists()
    assert root_logger.level == logging.INFO
    assert any(isinstance(handler, RichHandler) for handler in root_logger.handlers)
    assert any(isinstance(handler, logging.handlers.RotatingFileHandler) for handler in root_logger.handlers)
    assert logging.getLogger("guild_settings.tests.a").level == log.TRACE
    assert logging.getLogger("guild_settings.tests.b").level == log.TRACE
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_daily_mode_with_excluded_loggers(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, root_logger: logging.Logger
) -> None:
    configure(monkeypatch, tmp_path, SETTINGS_LOG_MODE="daily", SETTINGS_TRACE_LOGGERS="!guild_settings.tests.quiet")

    log.setup()

    assert any(isinstance(handler, logging.handlers.TimedRotatingFileHandler) for handler in root_logger.handlers)
    assert root_logger.level == log.TRACE
    assert logging.getLogger("guild_settings.tests.quiet").level == logging.DEBUG
