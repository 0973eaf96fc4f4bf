"""
Retry controller with exponential backoff and failure classification.

Wraps a fallible coroutine with a ``RetryPolicy`` using tenacity's
``AsyncRetrying``. Each failed attempt is classified as:

    - passthrough: ValidationError, TerminalError, OperationCancelledError
      propagate unchanged (never retried)
    - terminal: HTTP-like status in 400-499, raised as the controller's
      normalized terminal error (AuthenticationError for logins,
      SecretAccessError for secret fetches)
    - retryable: 5xx, network errors, timeouts and anything unclassified;
      retried until the policy is exhausted, then surfaced as
      RetriesExhaustedError carrying the last underlying error

Example:
    >>> controller = RetryController(RetryPolicy(max_retries=3, min_delay=0.5))
    >>> data = await controller.run(lambda: transport.get("/secret/foo"))
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    stop_never,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from libs.vault.exceptions import (
    AuthenticationError,
    OperationCancelledError,
    RetriesExhaustedError,
    TerminalError,
    ValidationError,
)
from libs.vault.schemas import RetryPolicy

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_PASSTHROUGH = (ValidationError, TerminalError, OperationCancelledError)


def is_terminal_status(status: int | None) -> bool:
    """4xx-class statuses mean the request itself is wrong; retrying cannot help."""
    return status is not None and 400 <= status <= 499


def is_retryable(exception: BaseException) -> bool:
    """
    Decide whether a failed attempt should be retried.

    Retryable:
        - TransientError (network, timeouts, 5xx)
        - VaultAPIError with a 5xx status
        - Any other, unclassified exception

    Not retryable:
        - ValidationError, TerminalError, OperationCancelledError
        - Anything carrying a 4xx status
    """
    if isinstance(exception, _PASSTHROUGH):
        return False
    if not isinstance(exception, Exception):
        return False
    return not is_terminal_status(getattr(exception, "status", None))


def build_wait(policy: RetryPolicy) -> wait_base:
    """Translate a RetryPolicy into a tenacity wait strategy."""
    if policy.jitter:
        return wait_random_exponential(
            multiplier=policy.min_delay,
            max=policy.max_delay,
            exp_base=policy.backoff_factor,
            min=policy.min_delay,
        )
    return wait_exponential(
        multiplier=policy.min_delay,
        max=policy.max_delay,
        exp_base=policy.backoff_factor,
        min=policy.min_delay,
    )


class RetryController:
    """
    Runs one operation under a retry policy; cancellable mid-backoff.

    A controller is single-use: create one per operation. ``cancel()`` wakes a
    pending backoff sleep so the run ends with OperationCancelledError instead
    of invoking the attempt function again. A result that arrives after
    cancellation is discarded.

    Attributes:
        policy: The effective retry policy
        name: Label used in log records (e.g. "login", "secret:/secret/foo")
        attempts: Number of times the attempt function has been invoked
    """

    def __init__(
        self,
        policy: RetryPolicy,
        *,
        terminal_error: type[TerminalError] = AuthenticationError,
        name: str = "operation",
    ) -> None:
        self.policy = policy
        self.name = name
        self.attempts = 0
        self._terminal_error = terminal_error
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Tear down the operation; idempotent."""
        if not self._cancelled.is_set():
            logger.debug("Retry operation cancelled", extra={"operation": self.name})
        self._cancelled.set()

    async def _sleep(self, seconds: float) -> None:
        # Returns early when cancelled; the next attempt then aborts.
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except TimeoutError:
            pass

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else None
        logger.warning(
            "Retryable failure, backing off",
            extra={
                "operation": self.name,
                "attempt": retry_state.attempt_number,
                "delay_seconds": delay,
                "error_type": type(error).__name__ if error else None,
                "status": getattr(error, "status", None),
            },
        )

    def _check_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError(f"Operation '{self.name}' was cancelled")

    async def run(self, attempt_fn: Callable[[], Awaitable[_T]]) -> _T:
        """
        Invoke ``attempt_fn`` until it succeeds or fails non-retryably.

        Raises:
            TerminalError: A 4xx-class failure (normalized, cause attached)
            RetriesExhaustedError: Retryable failures outlasted the policy
            ValidationError: Propagated unchanged from the attempt
            OperationCancelledError: cancel() was called before completion
        """
        stop = (
            stop_never
            if self.policy.max_retries is None
            else stop_after_attempt(self.policy.max_retries + 1)
        )
        retrying = AsyncRetrying(
            stop=stop,
            wait=build_wait(self.policy),
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    self._check_cancelled()
                    self.attempts += 1
                    result = await attempt_fn()
                    self._check_cancelled()
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            logger.error(
                "Retry policy exhausted",
                extra={"operation": self.name, "attempts": self.attempts},
            )
            if last_error is None:  # pragma: no cover - tenacity only stops on failures here
                raise
            raise RetriesExhaustedError(last_error, self.attempts) from last_error
        except _PASSTHROUGH:
            raise
        except Exception as exc:
            status = getattr(exc, "status", None)
            if not is_terminal_status(status):
                raise
            logger.error(
                "Terminal failure, not retrying",
                extra={"operation": self.name, "status": status, "attempts": self.attempts},
            )
            raise self._terminal_error(
                f"{self._describe_terminal()}: {getattr(exc, 'message', None) or exc}",
                status=status,
                path=getattr(exc, "path", None),
            ) from exc
        return result

    def _describe_terminal(self) -> str:
        if issubclass(self._terminal_error, AuthenticationError):
            return "Authentication failed"
        return "Request rejected"
