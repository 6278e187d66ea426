"""Logging configuration for the composite_pta package.

Only the ``composite_pta`` logger hierarchy is configured, so an embedding
application keeps control of the root logger.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

PACKAGE_LOGGER = "composite_pta"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: Union[int, str] = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[object] = None,
    log_file: Optional[Union[str, Path]] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure logging for solver and fitting sessions.

    Args:
        level: Logging level as int or name ('DEBUG', 'INFO', ...)
        format_string: Custom format string (default: standard format)
        stream: Output stream (default: stderr)
        log_file: Optional path to log file (logs to both console and file if provided)
        propagate: Also pass records up to the root logger

    Returns:
        The configured package logger

    Example:
        >>> from composite_pta.logging_config import configure_logging
        >>> configure_logging(level="INFO", log_file="fit_session.log")
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    if format_string is None:
        format_string = DEFAULT_FORMAT
    formatter = logging.Formatter(format_string)

    handlers: List[logging.Handler] = []

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setLevel(level)
        package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = propagate

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
