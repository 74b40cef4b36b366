"""
Logging configuration and utilities

All ffibind loggers live under the "ffibind" namespace so a single call to
setup_logging() controls the whole generator.
"""

import logging
import os
from typing import Optional

LOG_LEVEL_ENV = 'FFIBIND_LOG_LEVEL'


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure logging for the ffibind package.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Falls back to $FFIBIND_LOG_LEVEL, then WARNING.
        log_file: Optional file path for log output
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, 'WARNING')

    log_level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger('ffibind')
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for an ffibind module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance under the ffibind namespace
    """
    if name == 'ffibind' or name.startswith('ffibind.'):
        return logging.getLogger(name)
    return logging.getLogger(f'ffibind.{name}')
