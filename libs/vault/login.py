"""
Login orchestration and credential lifecycle.

State machine:
    unauthenticated → authenticating → authenticated
    authenticated → unauthenticated   (logout, or a failed re-login)

One login runs at a time per client. A silent re-login (timer renewal or a
``login()`` call without options) joins an attempt already in flight. A call
with explicit options joins an in-flight attempt for the same options, and
otherwise waits for it to settle before starting its own.

On success the credential is swapped in atomically and, when the lease is
positive, a renewal re-runs ``login()`` with the retained options after
``lease_duration`` seconds. A lease of 0 never renews.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from libs.vault.auth import AuthBackend, get_backend
from libs.vault.events import EVENT_AUTHENTICATED, EVENT_ERROR, EVENT_LOGIN_ERROR, EventBus
from libs.vault.exceptions import (
    AuthenticationError,
    OperationCancelledError,
    ValidationError,
    VaultClientError,
)
from libs.vault.retry import RetryController
from libs.vault.scheduler import RenewalScheduler
from libs.vault.schemas import AuthResponse, LoginOptions, RetryPolicy, parse_model
from libs.vault.transport import VaultTransport

logger = logging.getLogger(__name__)

LOGIN_KEY = ("login",)


def _retrieve_outcome(attempt: "asyncio.Future[Credential]") -> None:
    # Callers may all have gone (logout, cancelled renewal); mark the error seen.
    if not attempt.cancelled():
        attempt.exception()


class ClientStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Credential:
    """
    Snapshot of the client's credential.

    Replaced wholesale on every transition, so readers on other threads see
    either the old or the new credential, never a mix.
    """

    token: str = field(default="", repr=False)
    lease_seconds: int = 0
    status: ClientStatus = ClientStatus.UNAUTHENTICATED
    accessor: str | None = None
    policies: tuple[str, ...] = ()
    renewable: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.status is ClientStatus.AUTHENTICATED


class LoginOrchestrator:
    """Drives logins through a backend and the retry controller."""

    def __init__(
        self,
        transport: VaultTransport,
        scheduler: RenewalScheduler,
        events: EventBus,
        backends: Mapping[str, AuthBackend],
        default_retry_policy: RetryPolicy,
    ) -> None:
        self._transport = transport
        self._scheduler = scheduler
        self._events = events
        self._backends = backends
        self._default_retry_policy = default_retry_policy
        self._credential = Credential()
        self._retained: LoginOptions | None = None
        self._inflight: asyncio.Future[Credential] | None = None
        self._inflight_options: LoginOptions | None = None
        self._controller: RetryController | None = None

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def retained_options(self) -> LoginOptions | None:
        return self._retained

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _prepare(
        self, options: LoginOptions | Mapping[str, Any] | None
    ) -> tuple[LoginOptions, AuthBackend, BaseModel]:
        if options is None:
            if self._retained is None:
                raise ValidationError("Invalid login options: no previous login to renew")
            validated = self._retained
        else:
            validated = parse_model(LoginOptions, options, "login options")
        backend = get_backend(validated.backend_name, self._backends)
        backend_options = backend.validate_options(validated.backend_options)
        return validated, backend, backend_options

    async def login(self, options: LoginOptions | Mapping[str, Any] | None = None) -> Credential:
        """
        Authenticate, or re-authenticate with the retained options.

        Raises:
            ValidationError: Bad options or a malformed auth response
            AuthenticationError: The service rejected the credentials
            RetriesExhaustedError: Transient failures outlasted the retry policy
            OperationCancelledError: Logout/teardown happened mid-login
        """
        if options is None and self.in_flight:
            logger.info("Login already in flight, joining it")
            return await asyncio.shield(self._inflight)  # type: ignore[arg-type]

        try:
            validated, backend, backend_options = self._prepare(options)
        except ValidationError as exc:
            self._publish_failure(exc)
            raise

        while self.in_flight:
            inflight = self._inflight
            if self._inflight_options == validated:
                logger.info("Login already in flight, joining it")
                return await asyncio.shield(inflight)  # type: ignore[arg-type]
            await asyncio.wait({inflight})  # type: ignore[arg-type]

        self._inflight_options = validated
        attempt = asyncio.ensure_future(self._authenticate(validated, backend, backend_options))
        attempt.add_done_callback(_retrieve_outcome)
        self._inflight = attempt
        return await asyncio.shield(attempt)

    async def _authenticate(
        self, options: LoginOptions, backend: AuthBackend, backend_options: BaseModel
    ) -> Credential:
        if asyncio.current_task() is not self._inflight:
            # reset() ran before this attempt got its first turn.
            raise OperationCancelledError("Operation 'login' was cancelled")
        self._scheduler.cancel(LOGIN_KEY)
        previous = self._credential
        self._credential = Credential(
            token=previous.token,
            lease_seconds=previous.lease_seconds,
            status=ClientStatus.AUTHENTICATING,
        )

        controller = RetryController(
            self._default_retry_policy.merged(options.retry_policy),
            terminal_error=AuthenticationError,
            name="login",
        )
        self._controller = controller
        logger.info("Logging in", extra={"backend": options.backend_name})

        try:
            raw = await controller.run(lambda: backend.login(self._transport, backend_options))
            auth = parse_model(AuthResponse, raw, "auth response")
        except OperationCancelledError:
            logger.info("Login cancelled", extra={"backend": options.backend_name})
            raise
        except VaultClientError as exc:
            self._credential = Credential()
            self._publish_failure(exc)
            raise
        finally:
            if self._controller is controller:
                self._controller = None

        self._retained = options
        self._credential = Credential(
            token=auth.client_token,
            lease_seconds=auth.lease_duration,
            status=ClientStatus.AUTHENTICATED,
            accessor=auth.accessor,
            policies=tuple(auth.policies),
            renewable=auth.renewable,
        )
        if auth.lease_duration > 0:
            self._scheduler.arm(LOGIN_KEY, auth.lease_duration, self._renew)

        logger.info(
            "Authenticated",
            extra={
                "backend": options.backend_name,
                "lease_seconds": auth.lease_duration,
                "attempts": controller.attempts,
            },
        )
        self._events.publish(EVENT_AUTHENTICATED, self._credential)
        return self._credential

    async def _renew(self) -> None:
        logger.info("Credential lease expired, renewing")
        await self.login()

    def _publish_failure(self, error: VaultClientError) -> None:
        logger.error(
            "Login failed",
            extra={"error_type": type(error).__name__, "status": error.status},
        )
        self._events.publish(EVENT_LOGIN_ERROR, error)
        self._events.publish(EVENT_ERROR, error)

    def reset(self) -> None:
        """Cancel renewal and any in-flight login, and drop the credential."""
        self._scheduler.cancel(LOGIN_KEY)
        if self._controller is not None:
            self._controller.cancel()
            self._controller = None
        # The cancelled attempt must not be joined by later logins.
        self._inflight = None
        self._inflight_options = None
        self._credential = Credential()
        self._retained = None
