"""Structured logging for the vault client.

JSON output with redaction of tokens, passwords and secret payloads.

Usage:
    # At process startup
    from libs.common.logging import configure_logging
    configure_logging(service_name="vault-client", log_level="INFO")

    # In modules
    logger = logging.getLogger(__name__)
    logger.info("Secret cached", extra={"address": "db", "lease_seconds": 3600})
"""

from libs.common.logging.config import configure_logging, get_logger
from libs.common.logging.formatter import REDACTED, SENSITIVE_KEYS, JSONFormatter, redact

__all__ = [
    "configure_logging",
    "get_logger",
    "JSONFormatter",
    "REDACTED",
    "SENSITIVE_KEYS",
    "redact",
]
