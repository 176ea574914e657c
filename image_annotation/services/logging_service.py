"""
Logging service for the image annotation core.

Every module logs through a child of the ``image_annotation`` logger.
setup_logging() attaches console and, optionally, dated file handlers to
that package logger only, so a host application's root logging setup is
left alone. Log files go to ~/.local/share/image-annotation/logs/ unless
another directory is given.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional


PACKAGE_LOGGER = "image_annotation"

# Default log directory following XDG Base Directory Specification
DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "image-annotation" / "logs"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logging_initialized = False


def log_file_path(log_dir: Path, day: Optional[datetime] = None) -> Path:
    """Path of the log file for a given day, today by default."""
    day = day or datetime.now()
    return log_dir / f"image_annotation_{day.strftime('%Y%m%d')}.log"


def setup_logging(
    log_level: int = logging.INFO,
    log_to_file: bool = True,
    log_dir: Optional[Path] = None,
    propagate: bool = False,
) -> logging.Logger:
    """
    Attach handlers to the package logger.

    Only the first call has an effect; later calls return the configured
    logger unchanged.

    Args:
        log_level: Level for the package logger and its handlers.
        log_to_file: Also write to a dated file in log_dir.
        log_dir: Directory for log files, DEFAULT_LOG_DIR if None.
        propagate: Pass records on to the host's root handlers as well.

    Returns:
        The package logger.
    """
    global _logging_initialized

    logger = logging.getLogger(PACKAGE_LOGGER)
    if _logging_initialized:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    logger.setLevel(log_level)
    logger.propagate = propagate
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_to_file:
        log_dir = log_dir or DEFAULT_LOG_DIR
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file_path(log_dir), encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create log file in {log_dir}: {e}. Logging to console only.")

    _logging_initialized = True
    logger.debug(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module of the package.

    Args:
        name: Typically ``__name__`` of the calling module. Names outside
            the package are nested under it.

    Usage:
        from image_annotation.services.logging_service import get_logger
        logger = get_logger(__name__)
        logger.info("Controller created")
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
