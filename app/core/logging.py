"""Centralized logging configuration for the application."""

import logging
import sys

LOGGER_NAMESPACE = "bankrecon"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the application logger.

    Sets up a consistent log format across the entire application
    with timestamps, log level, module name, and the message.

    Args:
        level: The log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Returns:
        The configured root application logger.
    """
    log_format = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # dictConfig may already have attached a console handler
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        logger.addHandler(handler)

    # Prevent duplicate logs if called multiple times
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger under the bankrecon namespace.

    Usage:
        from app.core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Importing bank transactions")

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        A child logger with the given name.
    """
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
