"""Logging setup for processes embedding the vault client.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(service_name="vault-client", log_level="INFO")
    >>> logger.info("Client started", extra={"url": "https://vault:8200/v1"})
"""

import logging
import sys

from libs.common.logging.formatter import JSONFormatter


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Sets up a single stdout handler with the redacting JSONFormatter. Existing
    root handlers are replaced so repeated calls do not duplicate output.

    Args:
        service_name: Name stamped on every record (e.g., "vault-client")
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether to include ``extra`` fields in output

    Returns:
        Configured root logger instance

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter(service_name=service_name, include_context=include_context))
    root_logger.addHandler(handler)

    return root_logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger by name (typically ``__name__``); root logger if None."""
    return logging.getLogger(name)
