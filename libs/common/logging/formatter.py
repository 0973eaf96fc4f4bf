"""JSON log formatter for structured logging.

Outputs one JSON object per record with a fixed schema so vault client logs
can be shipped to any aggregator. Context fields passed via ``extra={...}``
are redacted before serialization: values stored under sensitive keys
(tokens, passwords, secret payloads) never reach the log stream.

Example log output:
    {
        "timestamp": "2025-10-21T10:30:00.000Z",
        "level": "INFO",
        "service": "vault-client",
        "logger": "libs.vault.watcher",
        "message": "Secret cached",
        "context": {
            "address": "db",
            "source_path": "/database/creds/app",
            "lease_seconds": 3600
        }
    }
"""

import json
import logging
import traceback
from collections.abc import Mapping
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = frozenset(
    {
        "client_token",
        "token",
        "password",
        "secret_id",
        "x-vault-token",
        "data",
    }
)

_RESERVED_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "context",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
    }
)


def redact(value: Any) -> Any:
    """
    Return ``value`` with every sensitive key's value masked.

    Walks nested mappings and lists. Key matching is case-insensitive.

    Example:
        >>> redact({"path": "/auth/userpass/login/app", "password": "hunter2"})
        {'path': '/auth/userpass/login/app', 'password': '***REDACTED***'}
    """
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [redact(item) for item in value]
    return value


class JSONFormatter(logging.Formatter):
    """Formats log records as redacted JSON.

    Attributes:
        service_name: Name of the service emitting logs
        include_context: Whether to include extra context fields

    Example:
        >>> formatter = JSONFormatter(service_name="vault-client")
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(formatter)
        >>> logging.getLogger("libs.vault").addHandler(handler)
    """

    def __init__(
        self, service_name: str, include_context: bool = True, *args: Any, **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            context = self._extract_context(record)
            if context:
                log_entry["context"] = redact(context)

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self._format_exception(record.exc_info),
            }

        log_entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_entry, default=str)

    def _format_timestamp(self, created: float) -> str:
        """ISO 8601 in UTC with millisecond precision."""
        dt = datetime.fromtimestamp(created, tz=UTC)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def _extract_context(self, record: logging.LogRecord) -> dict[str, Any] | None:
        """Explicit ``context`` dict if given, otherwise every non-reserved extra field."""
        context = getattr(record, "context", None)
        if context and isinstance(context, dict):
            return dict(context)

        extra = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED_FIELDS
        }
        return extra if extra else None

    def _format_exception(
        self,
        exc_info: tuple[type[BaseException] | None, BaseException | None, TracebackType | None],
    ) -> str:
        return "".join(traceback.format_exception(*exc_info))
