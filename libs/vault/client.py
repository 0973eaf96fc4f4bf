"""
VaultClient - credential and secret lifecycle manager.

The client is the single owner of all mutable state: the credential (via
the login orchestrator), the secret store, the renewal scheduler and the
event bus. Components take the client's collaborators by reference; nothing
lives in module globals.

Usage Example:
    >>> async with VaultClient("https://vault.example.com:8200/v1") as vault:
    ...     await vault.login({"backend_name": "userpass",
    ...                        "backend_options": {"username": "app", "password": "..."}})
    ...     await vault.watch([{"address": ".", "source_path": "/secret/app"},
    ...                        {"address": "db", "source_path": "/database/creds/app"}])
    ...     db = vault.secret("db")

Security:
    - Tokens and secret values are never logged (only paths and addresses)
    - All state is in-memory; nothing is persisted
"""

import logging
from collections.abc import Callable, Hashable, Mapping
from types import TracebackType
from typing import Any

from libs.vault.auth import AuthBackend, default_backends
from libs.vault.events import EVENT_ERROR, EVENT_LOGOUT, EventBus
from libs.vault.exceptions import VaultClientError
from libs.vault.login import ClientStatus, Credential, LoginOrchestrator
from libs.vault.scheduler import RenewalScheduler
from libs.vault.schemas import LoginOptions, RetryPolicy
from libs.vault.store import SecretStore
from libs.vault.transport import VaultResponse, VaultTransport
from libs.vault.watcher import SecretWatcher

logger = logging.getLogger(__name__)

REVOKE_SELF_PATH = "/auth/token/revoke-self"


class VaultClient:
    """
    Client for a Vault-style secret service.

    Args:
        url: Base URL of the service API, e.g. "https://vault:8200/v1"
        retry_policy: Client-wide default retry policy (full or partial)
        namespace: Optional namespace sent as X-Vault-Namespace
        timeout: HTTP timeout in seconds
        verify: Verify TLS certificates
        transport: Pre-built transport (its token provider is rebound)
        scheduler: Pre-built renewal scheduler
        backends: Extra or replacement login strategies, keyed by name
    """

    def __init__(
        self,
        url: str,
        *,
        retry_policy: RetryPolicy | Mapping[str, Any] | None = None,
        namespace: str | None = None,
        timeout: float = 10.0,
        verify: bool = True,
        transport: VaultTransport | None = None,
        scheduler: RenewalScheduler | None = None,
        backends: Mapping[str, AuthBackend] | None = None,
    ) -> None:
        self.url = url
        self.retry_policy = RetryPolicy().merged(retry_policy)
        self.events = EventBus()
        self.scheduler = scheduler or RenewalScheduler()
        self.store = SecretStore()
        self.transport = transport or VaultTransport(
            url, namespace=namespace, timeout=timeout, verify=verify
        )
        self.transport.set_token_provider(lambda: self._auth.credential.token or None)

        registry = default_backends()
        registry.update(backends or {})
        self.backends = registry

        self._auth = LoginOrchestrator(
            self.transport, self.scheduler, self.events, self.backends, self.retry_policy
        )
        self._watcher = SecretWatcher(
            self.transport, self.store, self.scheduler, self.events, self.retry_policy
        )
        logger.info("Initialized vault client", extra={"url": url, "namespace": namespace})

    # ------------------------------------------------------------------
    # Credential
    # ------------------------------------------------------------------

    @property
    def status(self) -> ClientStatus:
        return self._auth.credential.status

    @property
    def credential(self) -> Credential:
        return self._auth.credential

    @property
    def token(self) -> str | None:
        return self._auth.credential.token or None

    @property
    def renewals(self) -> list[Hashable]:
        """Keys with an armed renewal: ``("login",)`` and ``("secret", address)``."""
        return self.scheduler.keys()

    async def login(self, options: LoginOptions | Mapping[str, Any] | None = None) -> Credential:
        """Authenticate; without options, silently re-authenticate with the last ones."""
        return await self._auth.login(options)

    async def logout(self, revoke: bool = False) -> None:
        """
        Drop the credential and stop every renewal.

        Cached secrets stay readable until ``close()``. With ``revoke=True``
        the token is revoked server-side first; a failed revoke is logged and
        published as ``error`` but does not stop the logout.
        """
        if revoke and self.token:
            try:
                await self.transport.post(REVOKE_SELF_PATH)
            except VaultClientError as exc:
                logger.warning("Token revoke failed", extra={"status": exc.status})
                self.events.publish(EVENT_ERROR, exc)
        self._cancel_everything()
        logger.info("Logged out")
        self.events.publish(EVENT_LOGOUT)

    def _cancel_everything(self) -> None:
        self.scheduler.cancel_all()
        self._watcher.cancel_all()
        self._auth.reset()

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    async def watch(
        self,
        refs: Any,
        retry_policy: RetryPolicy | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Fetch one or more secrets into the cache and keep their leases renewed."""
        return await self._watcher.watch(refs, retry_policy)

    def secret(self, address: str | None = None) -> Any:
        """Deep copy of the cached value at ``address`` (everything if omitted), or None."""
        return self.store.get(address)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
        """Subscribe to an event; returns an unsubscribe function."""
        return self.events.subscribe(event, callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        self.events.unsubscribe(event, callback)

    # ------------------------------------------------------------------
    # Raw HTTP
    # ------------------------------------------------------------------

    async def request(self, method: str, path: str, **kwargs: Any) -> VaultResponse:
        """Authenticated request; failures are published as ``error`` and re-raised."""
        try:
            return await self.transport.request(method, path, **kwargs)
        except VaultClientError as exc:
            self.events.publish(EVENT_ERROR, exc)
            raise

    async def get(self, path: str, **kwargs: Any) -> Any:
        return (await self.request("GET", path, **kwargs)).data

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return (await self.request("POST", path, json=json, **kwargs)).data

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return (await self.request("PUT", path, json=json, **kwargs)).data

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return (await self.request("PATCH", path, json=json, **kwargs)).data

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return (await self.request("DELETE", path, **kwargs)).data

    async def head(self, path: str, **kwargs: Any) -> Any:
        return (await self.request("HEAD", path, **kwargs)).data

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Tear down: stop all renewals, clear credential and cache, close HTTP."""
        self._cancel_everything()
        self.store.clear()
        await self.transport.aclose()
        logger.info("Vault client closed")

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
