"""Centralized logging configuration for linearkit.

Sets up standard Python logging with appropriate levels, formatters,
and handlers (console, optional file).
"""

import logging
import sys
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None

NOISY_LOGGERS = ("httpx", "httpcore")


def resolve_level(level: Union[int, str]) -> int:
    """Accepts logging constants or names like 'debug' / 'WARN'."""
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else DEFAULT_LOG_LEVEL


def setup_logging(
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, 'info').
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.
    """
    level = resolve_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logging.info(f"Logging to file: {log_file}")

    # Request lines from the HTTP client drown out retry warnings
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.debug(f"Logging configured. Level={logging.getLevelName(level)}")
