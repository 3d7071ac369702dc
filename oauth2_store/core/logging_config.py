"""Logging configuration for the store.

The managers never configure logging themselves; they log through the
``logging.Logger`` they are constructed with. Host applications that want the
store's records on stderr call :func:`setup_logging` once at startup.
"""

import logging
import sys
from typing import Optional

from oauth2_store.core.config import settings

# Structured fields the managers attach through ``extra``
STRUCTURED_FIELDS = ("collection", "method", "id", "signature", "error")

STORE_LOGGER_NAME = "oauth2_store"


class PlainFormatter(logging.Formatter):
    """Plain text formatter that appends the store's structured fields."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fields = [
            f"{name}={getattr(record, name)}"
            for name in STRUCTURED_FIELDS
            if getattr(record, name, None) not in (None, "")
        ]
        if fields:
            message = f"{message} [{' '.join(fields)}]"
        return message


def setup_logging(
    level: Optional[str] = None,
    stream=None,
) -> logging.Logger:
    """Configure the ``oauth2_store`` logger hierarchy.

    Args:
        level: Log level name, defaults to ``settings.LOG_LEVEL``.
        stream: Output stream, defaults to stderr.

    Returns:
        The configured ``oauth2_store`` logger.
    """
    store_logger = logging.getLogger(STORE_LOGGER_NAME)
    store_logger.setLevel((level or settings.LOG_LEVEL).upper())
    store_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(PlainFormatter())
    store_logger.addHandler(handler)

    # SQLAlchemy engine logging is driven by DEBUG (echo) instead
    store_logger.propagate = False
    return store_logger
