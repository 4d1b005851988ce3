"""
Logging configuration for hostwatch.

Console output stays terse; the optional log file carries timestamps and
logger names.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "hostwatch"


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Path | None = None,
    console: bool = True,
) -> logging.Logger:
    """
    Configure and return the package logger.

    Calling it again replaces the previous handlers.

    Args:
        level: Logging level for the package logger.
        log_file: Optional file path; its parent directory is created.
        console: Whether to log to stderr as well.

    Returns:
        The configured ``hostwatch`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(fmt="[%(levelname)s] %(message)s"))
        logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.info("Logging initialized")
    return logger
