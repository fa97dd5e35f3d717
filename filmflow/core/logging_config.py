"""
Filmflow Logging Configuration

All filmflow loggers hang off the "filmflow" root logger. HTTP and provider
SDK loggers are held at WARNING so request chatter does not bury stage logs.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from enum import Enum


class LogLevel(Enum):
    """Log level enumeration."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

ROOT_LOGGER_NAME = "filmflow"

# Libraries that log every request at INFO
NOISY_LIBRARIES = ("httpx", "httpcore", "anthropic", "openai", "google", "urllib3")

_initialized: bool = False


def level_for_flags(verbose: bool = False, debug: bool = False) -> LogLevel:
    """Map CLI flags to a level; quiet by default."""
    if debug:
        return LogLevel.DEBUG
    if verbose:
        return LogLevel.INFO
    return LogLevel.WARNING


def quiet_libraries(level: LogLevel = LogLevel.WARNING) -> None:
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(level.value)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    log_file: Optional[Path] = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure the filmflow root logger.

    Args:
        level: Minimum level for filmflow loggers
        log_file: Also write to this file (parent directories are created)
        verbose: Include line numbers in each record

    Returns:
        The filmflow root logger
    """
    global _initialized

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level.value)
    root_logger.handlers.clear()

    formatter = logging.Formatter(
        VERBOSE_FORMAT if verbose else DEFAULT_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Debug runs want to see provider traffic too
    quiet_libraries(LogLevel.DEBUG if level == LogLevel.DEBUG else LogLevel.WARNING)

    _initialized = True
    root_logger.debug(f"Logging initialized at {level.name}")
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Logger for one component, e.g. get_logger("pipeline") -> "filmflow.pipeline".

    Sets up default logging on first use.
    """
    if not _initialized:
        setup_logging()

    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
