"""Logging setup and the structured logger used by the core components."""

import gzip
import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from packetpilot.config import LoggingSettings
from packetpilot.core.errors import ConfigurationError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: str) -> int:
    """Map a config level name to a logging level."""
    try:
        return _LEVELS[level.strip().lower()]
    except KeyError:
        raise ConfigurationError(f"invalid log level {level!r}") from None


def _gzip_namer(name: str) -> str:
    return name + ".gz"


def _gzip_rotator(source: str, dest: str):
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


def setup_logging(settings: LoggingSettings, level: Optional[str] = None):
    """Configure the root logger for the daemon.

    Logs always go to stdout; when a log file is configured they are also
    written there with size-based rotation.

    Args:
        settings: Logging section of the daemon settings
        level: Optional level overriding the configured one (from the CLI)
    """
    log_level = parse_level(level or settings.level)
    handlers = [logging.StreamHandler(sys.stdout)]

    if settings.file:
        try:
            Path(settings.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                settings.file,
                maxBytes=settings.max_size * 1024 * 1024,
                backupCount=settings.max_backups
            )
        except OSError as e:
            raise ConfigurationError(f"failed to initialize logger: {e}") from e

        if settings.compress:
            file_handler.namer = _gzip_namer
            file_handler.rotator = _gzip_rotator
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True
    )


def _render(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    if isinstance(value, (list, tuple, set)):
        return "[" + " ".join(str(v) for v in value) + "]"
    text = str(value)
    if not text or any(c.isspace() or c in '="' for c in text):
        return '"' + text.replace('"', '\\"') + '"'
    return text


def format_fields(message: str, fields: Dict[str, Any]) -> str:
    """Append key=value pairs to a message, keeping their order."""
    if not fields:
        return message
    pairs = " ".join(f"{key}={_render(value)}" for key, value in fields.items())
    return f"{message} {pairs}"


class StructuredLogger:
    """Leveled logger that takes ordered key/value fields.

    This is the only logging surface the core components use:

        log.info("Interface usage updated", interface="eth0", total_rx_mb=1.5)
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    # message is positional-only so any field name, "message" included, is allowed
    def debug(self, message: str, /, **fields):
        self._log(logging.DEBUG, message, fields)

    def info(self, message: str, /, **fields):
        self._log(logging.INFO, message, fields)

    def warn(self, message: str, /, **fields):
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, /, exc_info: bool = False, **fields):
        """Log an error; exc_info=True attaches the active traceback."""
        self._log(logging.ERROR, message, fields, exc_info=exc_info)

    def _log(self, level: int, message: str, fields: Dict[str, Any], exc_info: bool = False):
        if not self._logger.isEnabledFor(level):
            return
        # stacklevel points records at the caller, not this adapter
        self._logger.log(level, format_fields(message, fields), exc_info=exc_info, stacklevel=3)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger wrapping the named stdlib logger."""
    return StructuredLogger(logging.getLogger(name))
