import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import SettingsConfigDict


__all__ = (  # noqa: RUF022
    "Monitoring",
    "Gateway",
    "SUPPORTED_TYPES",
    "FOLDER_TYPE",
    "RESERVED_KEYS",
)


class BaseSettings(PydanticBaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class MonitoringCls(BaseSettings):
    debug_logging: bool = Field(True, validation_alias="LOG_DEBUG")
    trace_loggers: str | None = Field(None, validation_alias="SETTINGS_TRACE_LOGGERS")
    log_mode: Literal["daily", "dev"] = Field("dev", validation_alias="SETTINGS_LOG_MODE")
    log_file: Path = Field(Path("logs/guild-settings.log"), validation_alias="SETTINGS_LOG_FILE")

    @field_validator("log_mode", mode="before")
    @classmethod
    def normalise_log_mode(cls, v: Any) -> Any:
        """Accept the log mode in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class GatewayCls(BaseSettings):
    schema_directory: Path = Field(Path("bwd"), validation_alias="SCHEMA_DIRECTORY")
    # relational mode: parse/default results also carry an SQL assignment fragment
    sql: bool = Field(False, validation_alias="GATEWAY_SQL")
    nice: bool = Field(False, validation_alias="GATEWAY_NICE")


FOLDER_TYPE: Final[str] = "Folder"

# a folder's persisted object holds its own type tag next to its children
RESERVED_KEYS: Final[frozenset[str]] = frozenset({"type"})

SUPPORTED_TYPES: Final[frozenset[str]] = frozenset(
    {
        "any",
        "boolean",
        "channel",
        "command",
        "float",
        "guild",
        "integer",
        "language",
        "role",
        "string",
        "textchannel",
        "url",
        "user",
        "voicechannel",
    }
)


LAZY_DEFINED = {
    "Monitoring": MonitoringCls,
    "Gateway": GatewayCls,
}

if TYPE_CHECKING:
    Monitoring: MonitoringCls
    Gateway: GatewayCls


## Use a lazy getattr pattern to allow for importing without defining all objects
def __getattr__(name: str) -> Any:
    if name in globals():
        return globals()[name]
    if name in LAZY_DEFINED:
        cls = LAZY_DEFINED[name]
        instance = cls()  # pyright: ignore[reportCallIssue]
        globals()[name] = instance
        return instance
    msg = f"module '{__name__}' has no attribute '{name}'"
    raise AttributeError(msg)


def validate_config() -> None:
    """Force initialization of all lazy defined configuration objects."""
    self = sys.modules[__name__]
    for name in LAZY_DEFINED:
        _ = getattr(self, name)
