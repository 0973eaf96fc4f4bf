"""
Vault Client Exception Hierarchy.

This module defines every exception raised by the vault client, giving callers
a precise way to tell malformed input apart from remote rejections and from
failures that were retried until the policy gave up.

Exception hierarchy:
    VaultClientError (base)
    ├── ValidationError - Malformed options, secret refs or auth response
    ├── VaultAPIError - Remote service answered with an error status
    ├── TransientError - Network failure or 5xx-class response (retryable)
    ├── TerminalError - Normalized terminal rejection (never retried)
    │   ├── AuthenticationError - Login rejected by the service
    │   └── SecretAccessError - Secret fetch rejected by the service
    ├── RetriesExhaustedError - Retry policy exhausted, wraps the last error
    └── OperationCancelledError - Operation superseded or torn down mid-flight

All exceptions carry structured context (status, path) and NEVER include
token or secret values in their messages.
"""

from typing import Any


class VaultClientError(Exception):
    """
    Base exception for all vault client errors.

    Attributes:
        message: Human-readable error message (MUST NOT include secret values)
        status: HTTP-like status code when known (e.g. 401, 503)
        path: Remote path involved in the failure, if any

    Example:
        >>> str(VaultClientError("Request failed", status=503, path="/secret/foo"))
        'Request failed (status: 503, path: /secret/foo)'
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.path = path

    def __str__(self) -> str:
        context_parts = []
        if self.status is not None:
            context_parts.append(f"status: {self.status}")
        if self.path:
            context_parts.append(f"path: {self.path}")

        if context_parts:
            context = ", ".join(context_parts)
            return f"{self.message} ({context})"
        return self.message


class ValidationError(VaultClientError):
    """
    Raised when caller input or a response shape fails validation.

    Validation failures are never retried and are raised before any network
    call is made for the offending operation.

    Attributes:
        errors: Individual validation problems (pydantic-style error dicts)
    """

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message, path=path)
        self.errors = list(errors or [])


class VaultAPIError(VaultClientError):
    """
    Raised when the remote service answers with a non-success status.

    4xx-class instances are classified as terminal by the retry controller.

    Attributes:
        errors: The ``errors`` list from the response body, if present
    """

    def __init__(
        self,
        message: str,
        status: int,
        path: str | None = None,
        errors: list[Any] | None = None,
    ) -> None:
        super().__init__(message, status=status, path=path)
        self.errors = list(errors or [])


class TransientError(VaultClientError):
    """
    Raised on network failures, timeouts and 5xx-class responses.

    Always retried by the retry controller until the policy is exhausted.
    """


class TerminalError(VaultClientError):
    """
    Normalized terminal rejection; retrying cannot fix it.

    The underlying transport error is available as ``__cause__``.
    """


class AuthenticationError(TerminalError):
    """
    Raised when the service rejects a login (bad credentials, unknown role).

    A login failing with this error clears the credential and arms no renewal.
    """


class SecretAccessError(TerminalError):
    """
    Raised when the service rejects a secret fetch (missing path, denied).

    The previously cached value for the address is left untouched.
    """


class RetriesExhaustedError(VaultClientError):
    """
    Raised when a retryable failure persisted past the retry policy.

    The message and status mirror the last underlying error so diagnostics
    are not replaced by a generic "retries exhausted" text.

    Attributes:
        last_error: The final retryable exception
        attempts: Number of attempts made
    """

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        super().__init__(
            getattr(last_error, "message", None) or str(last_error) or type(last_error).__name__,
            status=getattr(last_error, "status", None),
            path=getattr(last_error, "path", None),
        )
        self.last_error = last_error
        self.attempts = attempts


class OperationCancelledError(VaultClientError):
    """
    Raised when an operation is cancelled by logout/teardown or superseded by
    a newer operation for the same key. Its result, if any, is discarded.
    """
