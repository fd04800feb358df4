from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pydantic
import pytest

from guild_settings import constants


@pytest.fixture()
def fresh_constants() -> Iterator[None]:
    for name in constants.LAZY_DEFINED:
        vars(constants).pop(name, None)
    yield
    for name in constants.LAZY_DEFINED:
        vars(constants).pop(name, None)


def test_monitoring_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SETTINGS_LOG_MODE", "DAILY")
    monkeypatch.setenv("SETTINGS_TRACE_LOGGERS", "guild_settings.schema")
    monkeypatch.setenv("LOG_DEBUG", "false")

    monitoring = constants.MonitoringCls()
    assert monitoring.log_mode == "daily"
    assert monitoring.trace_loggers == "guild_settings.schema"
    assert monitoring.debug_logging is False


def test_unknown_log_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SETTINGS_LOG_MODE", "hourly")
    with pytest.raises(pydantic.ValidationError):
        constants.MonitoringCls()


def test_gateway_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SCHEMA_DIRECTORY", "GATEWAY_SQL", "GATEWAY_NICE"):
        monkeypatch.delenv(name, raising=False)

    gateway = constants.GatewayCls()
    assert gateway.schema_directory == Path("bwd")
    assert gateway.sql is False
    assert gateway.nice is False


@pytest.mark.usefixtures("fresh_constants")
def test_lazy_configuration(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SCHEMA_DIRECTORY", str(tmp_path))
    monkeypatch.setenv("GATEWAY_SQL", "1")

    constants.validate_config()

    assert constants.Gateway.schema_directory == tmp_path
    assert constants.Gateway.sql is True
    assert constants.Gateway is constants.Gateway


def test_unknown_attribute() -> None:
    with pytest.raises(AttributeError, match="Nope"):
        constants.Nope  # noqa: B018
