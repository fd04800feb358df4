# pyright: strict
from __future__ import annotations

import logging
import logging.handlers
from typing import TYPE_CHECKING, Mapping, TypedDict, cast

from rich.logging import RichHandler

from guild_settings import constants


if TYPE_CHECKING:
    from typing_extensions import Unpack


TRACE = 5


def get_logger(name: str) -> "SettingsLogger":
    """Stub method for logging.getLogger."""
    return cast("SettingsLogger", logging.getLogger(name))


class LoggingParams(TypedDict, total=False):
    """Parameters for logging setup."""

    exc_info: logging._ExcInfoType  # type: ignore
    stack_info: bool
    stacklevel: int
    extra: Mapping[str, object] | None


class SettingsLogger(logging.Logger):
    """Custom logger which implements the trace level."""

    def trace(self, msg: object, *args: object, **kwargs: Unpack[LoggingParams]) -> None:
        """
        Log 'msg % args' with severity 'TRACE'.

        To pass exception information, use the keyword argument exc_info with a true value, e.g.
        logger.trace("Houston, we have a %s", "tiny detail.", exc_info=1)
        """
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)


def setup_trace_level() -> None:
    """Register the TRACE level and the logger class providing `trace`."""
    # Configure the "TRACE" logging level (e.g. "log.trace(message)")
    logging.TRACE = TRACE  # type: ignore
    logging.addLevelName(TRACE, "TRACE")
    logging.setLoggerClass(SettingsLogger)


def setup() -> None:
    """Set up loggers. Called once by the host application at startup, never on import."""
    setup_trace_level()

    format_string = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
    log_format = logging.Formatter(format_string)
    root_logger = logging.getLogger()

    # Set up file logging
    log_file = constants.Monitoring.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # a sized rotating handler for local development,
    # in production each day's logs go to a new file and are kept for 14 days
    file_handler: logging.Handler
    if constants.Monitoring.log_mode == "daily":
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            "midnight",
            utc=True,
            backupCount=14,
            encoding="utf-8",
        )
    else:
        # File handler rotates logs every 5 MB
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * (2**20),
            backupCount=10,
            encoding="utf-8",
        )
    file_handler.setFormatter(log_format)
    root_logger.addHandler(file_handler)

    root_logger.addHandler(RichHandler(rich_tracebacks=True))

    root_logger.setLevel(logging.DEBUG if constants.Monitoring.debug_logging else logging.INFO)
    # Silence irrelevant loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.INFO)
    _set_trace_loggers()

    root_logger.info("Logging initialization complete")


def _set_trace_loggers() -> None:
    """
    Set loggers to the trace level according to the value from the SETTINGS_TRACE_LOGGERS env var.

    When the env var is a list of logger names delimited by a comma,
    each of the listed loggers will be set to the trace level.

    If this list is prefixed with a "!", all of the loggers except the listed ones will be set to the trace level.

    Otherwise if the env var begins with a "*",
    the root logger is set to the trace level and other contents are ignored.
    """
    level_filter = constants.Monitoring.trace_loggers
    if level_filter:
        if level_filter.startswith("*"):
            logging.getLogger().setLevel(TRACE)

        elif level_filter.startswith("!"):
            logging.getLogger().setLevel(TRACE)
            for logger_name in level_filter.strip("!,").split(","):
                logging.getLogger(logger_name.strip()).setLevel(logging.DEBUG)

        else:
            for logger_name in level_filter.strip(",").split(","):
                logging.getLogger(logger_name.strip()).setLevel(TRACE)
