"""
Secret watch engine.

``watch()`` validates a batch of secret refs, fetches them concurrently and
returns a merged view of the batch. Each fetch (``watch_one``) merges its
payload into the shared SecretStore and, when the response carries a positive
``lease_duration``, arms a renewal for its address that re-runs the same fetch.
Every address renews on its own timer, independent of other secrets and of
the login credential.

At most one fetch per address is outstanding: starting a fetch cancels the
address's armed renewal and supersedes any fetch still in flight for it.
"""

import asyncio
import copy
import logging
from collections.abc import Mapping
from typing import Any

from libs.vault.events import EVENT_ERROR, EVENT_SECRET, EventBus, secret_event
from libs.vault.exceptions import (
    OperationCancelledError,
    SecretAccessError,
    ValidationError,
    VaultClientError,
)
from libs.vault.retry import RetryController
from libs.vault.scheduler import RenewalScheduler
from libs.vault.schemas import (
    RetryPolicy,
    SecretRef,
    SecretResponse,
    parse_model,
    parse_secret_refs,
)
from libs.vault.store import SecretStore
from libs.vault.transport import VaultTransport

logger = logging.getLogger(__name__)


def renewal_key(address: str) -> tuple[str, str]:
    return ("secret", address)


class SecretWatcher:
    """Fetches secrets into the store and keeps their leases renewed."""

    def __init__(
        self,
        transport: VaultTransport,
        store: SecretStore,
        scheduler: RenewalScheduler,
        events: EventBus,
        default_retry_policy: RetryPolicy,
    ) -> None:
        self._transport = transport
        self._store = store
        self._scheduler = scheduler
        self._events = events
        self._default_retry_policy = default_retry_policy
        self._operations: dict[str, RetryController] = {}

    def _resolve_policy(self, retry_policy: RetryPolicy | Mapping[str, Any] | None) -> RetryPolicy:
        if retry_policy is not None and not isinstance(retry_policy, RetryPolicy | Mapping):
            raise ValidationError("Invalid retry policy: expected a mapping or RetryPolicy")
        return self._default_retry_policy.merged(retry_policy)

    async def watch(
        self,
        refs: Any,
        retry_policy: RetryPolicy | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Fetch and cache one or more secrets, keeping them renewed.

        Args:
            refs: A path string, a ``{"source_path", "address"?}`` mapping, a
                SecretRef, or a list of those
            retry_policy: Full or partial override of the client's default

        Returns:
            A merged view of the requested secrets, each placed at its address

        Raises:
            ValidationError: Any ref or the retry policy is malformed; no
                request is made for any ref in the batch
            SecretAccessError / RetriesExhaustedError: The first fetch to fail
        """
        try:
            parsed = parse_secret_refs(refs)
            policy = self._resolve_policy(retry_policy)
        except ValidationError as exc:
            logger.error("Rejected secret watch request", extra={"errors": exc.errors})
            self._events.publish(EVENT_ERROR, exc)
            raise

        # Siblings keep running after the first failure and may still cache.
        results = await asyncio.gather(*(self.watch_one(ref, policy) for ref in parsed))

        view = SecretStore()
        for ref, value in zip(parsed, results, strict=True):
            if isinstance(value, Mapping):
                view.merge(ref.target, value)
        return view.get()

    async def watch_one(self, ref: SecretRef, policy: RetryPolicy) -> Any:
        """
        Fetch one secret, merge it at its address and arm its renewal.

        Returns:
            Deep copy of the fetched payload; the store may hold more at the address
        """
        address = ref.target
        key = renewal_key(address)

        self._scheduler.cancel(key)
        previous = self._operations.pop(address, None)
        if previous is not None:
            previous.cancel()

        controller = RetryController(
            policy, terminal_error=SecretAccessError, name=f"secret:{ref.source_path}"
        )
        self._operations[address] = controller

        try:
            body = await controller.run(lambda: self._transport.get(ref.source_path))
            response = parse_model(SecretResponse, body, "secret response")
        except OperationCancelledError:
            logger.debug("Secret fetch superseded", extra={"address": address})
            raise
        except VaultClientError as exc:
            logger.error(
                "Secret fetch failed",
                extra={
                    "address": address,
                    "source_path": ref.source_path,
                    "error_type": type(exc).__name__,
                    "status": exc.status,
                },
            )
            self._events.publish(EVENT_ERROR, exc)
            raise
        finally:
            if self._operations.get(address) is controller:
                del self._operations[address]

        if response.lease_duration > 0:
            self._scheduler.arm(key, response.lease_duration, lambda: self.watch_one(ref, policy))

        value = self._store.merge(address, response.data)
        logger.info(
            "Secret cached",
            extra={
                "address": address,
                "source_path": ref.source_path,
                "lease_seconds": response.lease_duration,
            },
        )
        self._events.publish(secret_event(address), value)
        self._events.publish(EVENT_SECRET, address, value)
        return copy.deepcopy(response.data)

    def cancel_all(self) -> None:
        """Supersede every in-flight fetch (renewal timers live in the scheduler)."""
        for controller in self._operations.values():
            controller.cancel()
        self._operations.clear()
