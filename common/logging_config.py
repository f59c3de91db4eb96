import logging
import os
import re
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FORMAT_WITH_CORRELATION = '%(asctime)s - %(name)s - %(levelname)s - [{correlation_id}] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class DigestShorteningFilter(logging.Filter):
    """Filter that shortens SHA-256 hex digests in log records to a readable prefix."""

    DIGEST_PATTERN = re.compile(r'\b([0-9a-fA-F]{12})[0-9a-fA-F]{52}\b')

    def filter(self, record: logging.LogRecord) -> bool:
        """Shorten digests in the log message and its arguments."""
        if isinstance(record.msg, str):
            record.msg = self._shorten(record.msg)

        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._shorten(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._shorten(arg) for arg in record.args)

        return True

    def _shorten(self, value):
        if isinstance(value, str):
            return self.DIGEST_PATTERN.sub(r'\1…', value)
        return value


def _build_formatter(correlation_id: Optional[str]) -> logging.Formatter:
    if correlation_id:
        return logging.Formatter(
            LOG_FORMAT_WITH_CORRELATION.format(correlation_id=correlation_id),
            datefmt=DATE_FORMAT
        )
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Args:
        component_name: Name of the component (e.g., 'server', 'cli', 'publisher')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO
        correlation_id: Optional correlation ID to include in log format

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(correlation_id))
    handler.addFilter(DigestShorteningFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_correlation_id(logger: logging.Logger, correlation_id: Optional[str]) -> None:
    """
    Update logger handlers to include (or drop) a correlation ID in the format.

    Module loggers usually carry no handlers of their own, so the nearest
    ancestor that does is updated instead. Root handlers are left alone.

    Args:
        logger: Logger instance to update
        correlation_id: Correlation ID to include, or None to restore the plain format
    """
    while logger is not None and not logger.handlers and logger.propagate:
        logger = logger.parent
    if logger is None or logger is logging.root:
        return
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(_build_formatter(correlation_id))
