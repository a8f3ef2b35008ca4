"""
Logging setup shared by every service module.

Usage:
    from encore.core.logging import setup_logger
    logger = setup_logger(__name__)
"""
import logging
import sys
from pathlib import Path

from encore.core.config import settings


def setup_logger(name: str) -> logging.Logger:
    """
    Return a logger with the console (and optional file) handler attached.

    Handlers are only added the first time a given name is configured.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(log_level)

    formatter = logging.Formatter(settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        try:
            log_path = Path(settings.LOG_FILE)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as exc:
            logger.warning("Could not set up file logging at %s: %s", settings.LOG_FILE, exc)

    return logger
