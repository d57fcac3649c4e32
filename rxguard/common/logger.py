"""Logging setup for RxGuard.

Library modules only call ``logging.getLogger(__name__)``. Handlers are
attached once, to the ``rxguard`` package logger, by whatever process embeds
the engine (``configure_logging``), so every ``rxguard.*`` record goes through
the same rotating file and console handlers.
"""

import logging
import logging.handlers
import os
from typing import List, Optional

from rxguard.core.config import Settings, get_settings

ROOT_LOGGER_NAME = "rxguard"

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"  # ISO 8601

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def parse_level(level: str) -> int:
    try:
        return LEVELS[level.upper()]
    except KeyError:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}") from None


def _build_handlers(
    name: str,
    log_dir: str,
    file_logging: bool,
    console_logging: bool,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                os.path.join(log_dir, f"{name}.log"),
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
        )
    if console_logging:
        handlers.append(logging.StreamHandler())
    return handlers


def setup_logger(
    name: str,
    log_dir: str = "/var/log/rxguard",
    level: str = "INFO",
    *,
    file_logging: bool = True,
    console_logging: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Attach file and/or console handlers to the named logger.

    Calling it again for the same name only updates the level.

    Args:
        name: Logger name; also the log file's base name
        log_dir: Directory for the rotating log file
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive)
        file_logging: Write to ``<log_dir>/<name>.log``
        console_logging: Write to stderr
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files to keep

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    logger = logging.getLogger(name)
    logger.setLevel(parse_level(level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _build_handlers(name, log_dir, file_logging, console_logging, max_bytes, backup_count):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure the package logger from application settings."""
    settings = settings or get_settings()
    return setup_logger(
        ROOT_LOGGER_NAME,
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.log_to_file,
        console_logging=settings.log_to_console,
    )
