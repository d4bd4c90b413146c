"""Logging configuration for the k3sctl package."""
import logging
import sys
from typing import Iterable

from .config import Config

# Libraries that log every SSH packet or HTTP request at DEBUG/INFO
NOISY_LOGGERS = ('paramiko', 'urllib3', 'kubernetes')


def setup_logger(name: str, level: int = None, quiet: Iterable[str] = NOISY_LOGGERS) -> logging.Logger:
    """
    Set up a logger with the specified name and log level.

    Pass ``""`` to configure the root logger, which every module logger
    (``ssh``, ``k3s.server``, ...) propagates to.

    Args:
        name: The name of the logger
        level: The logging level (default: Config.LOG_LEVEL)
        quiet: Logger names capped at WARNING unless ``level`` is DEBUG

    Returns:
        Configured logger instance
    """
    if level is None:
        level = getattr(logging, Config.LOG_LEVEL, logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(Config.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(handler)

    if level > logging.DEBUG:
        for noisy in quiet:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
