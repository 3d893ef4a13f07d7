"""Colored logging configuration for the ally_api command-line client.

Log records are written to stderr so that stdout only ever carries the
pretty-printed API responses. The root logger is configured once when the
module is imported; ``configure_logging`` lets the CLI override the level.
"""

import datetime
import logging
import os
import sys
from typing import ClassVar


class ColoredFormatter(logging.Formatter):
    """Logging formatter that adds ANSI color codes to the level column.

    Columns are separated by pipes. Timestamps are grey; DEBUG records get
    millisecond precision.

    Attributes:
        COLORS: Dictionary mapping log level names to ANSI color codes.
        GREY: ANSI color code for timestamps.
        RESET: ANSI reset code.
    """

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[90m",  # Grey
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    GREY: ClassVar[str] = "\033[90m"
    RESET: ClassVar[str] = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as ``time | LEVEL | name | message``.

        Args:
            record: LogRecord instance containing log information.

        Returns:
            Colorized log line. Exception text, when present, follows on the
            next lines uncolored.
        """
        created = datetime.datetime.fromtimestamp(record.created)
        if record.levelname == "DEBUG":
            timestamp = created.strftime("%H:%M:%S.%f")[:-3]
        else:
            timestamp = created.strftime("%H:%M:%S")

        level_color = self.COLORS.get(record.levelname, self.RESET)
        message = (
            f"{self.GREY}{timestamp}{self.RESET} | "
            f"{level_color}{record.levelname.ljust(8)}{self.RESET} | "
            f"{record.name.ljust(24)} | "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def _resolve_log_level(explicit_level: str | int | None = None) -> int:
    """Resolve a logging level from an explicit value or ``LOG_LEVEL``.

    Explicit levels always win. Unknown names fall back to INFO.
    """
    if explicit_level is not None:
        if isinstance(explicit_level, int):
            return explicit_level
        return getattr(logging, str(explicit_level).upper(), logging.INFO)

    env_level = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, env_level, logging.INFO)


def _install_handler(root_logger: logging.Logger) -> None:
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredFormatter())
        root_logger.addHandler(handler)


def _setup_global_logging() -> None:
    """Attach the colored stderr handler to the root logger.

    Idempotent; runs automatically when the module is imported.
    """
    root_logger = logging.getLogger()
    _install_handler(root_logger)
    root_logger.setLevel(_resolve_log_level())


_setup_global_logging()


def get_logger(name: str) -> logging.Logger:
    """Get a named logger for a class or module.

    Named loggers carry no level of their own; they inherit the root level,
    so a later ``configure_logging`` call applies to loggers created before
    and after it.

    Args:
        name: Logger name, typically the class name of the caller.

    Returns:
        Logger instance propagating to the colored root handler.
    """
    return logging.getLogger(name)


def configure_logging(level: str | int | None = None) -> int:
    """Explicitly set the global logging level.

    If ``level`` is given it is honored, otherwise ``LOG_LEVEL`` is read.

    Returns:
        The numeric level that was applied.
    """
    root_logger = logging.getLogger()
    _install_handler(root_logger)

    resolved_level = _resolve_log_level(level)
    root_logger.setLevel(resolved_level)
    return resolved_level
