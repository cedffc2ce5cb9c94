"""
Loguru logger configuration
"""
from __future__ import annotations

import sys

from loguru import logger

from .config import AppSettings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(
    settings: AppSettings | None = None,
    *,
    log_to_file: bool = True,
) -> None:
    """Configure loguru sinks for console and rotating file output.

    Safe to call more than once; previously installed sinks are removed first.
    """
    settings = settings or AppSettings()
    level = settings.log_level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    if log_to_file:
        log_file = settings.data_paths.log_file
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level=level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
        )

    logger.debug(f"Logging configured at level {level}")


__all__ = ["configure_logging", "logger"]
