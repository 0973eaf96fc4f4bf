"""
Vault client library: credential and leased-secret lifecycle management.

This package authenticates against a Vault-style HTTP secret service through
pluggable login strategies, keeps the access token alive by re-authenticating
when its lease expires, and caches fetched secrets with independent
per-secret lease renewal.

Quick Start:
    >>> from libs.vault import create_vault_client
    >>> async with create_vault_client() as vault:
    ...     await vault.login({"backend_name": "approle",
    ...                        "backend_options": {"role_id": "...", "secret_id": "..."}})
    ...     await vault.watch({"address": "db", "source_path": "/database/creds/app"})
    ...     vault.on("secret:db", lambda value: reconnect(value))
    ...     creds = vault.secret("db")

Architecture:
    VaultClient (client.py)
    ├── LoginOrchestrator (login.py) - login, single-flight, credential renewal
    ├── SecretWatcher (watcher.py) - secret fetch, store merge, lease renewal
    ├── RetryController (retry.py) - backoff + terminal/retryable classification
    ├── RenewalScheduler (scheduler.py) - one timer per key
    ├── SecretStore (store.py) - deep-merge cache, deep-copy reads
    ├── EventBus (events.py) - subscriber notifications
    ├── VaultTransport (transport.py) - httpx client with token hook
    └── AuthBackend strategies (auth/)
"""

from libs.vault.client import VaultClient
from libs.vault.events import (
    EVENT_AUTHENTICATED,
    EVENT_ERROR,
    EVENT_LOGIN_ERROR,
    EVENT_LOGOUT,
    EVENT_SECRET,
    EventBus,
    secret_event,
)
from libs.vault.exceptions import (
    AuthenticationError,
    OperationCancelledError,
    RetriesExhaustedError,
    SecretAccessError,
    TerminalError,
    TransientError,
    ValidationError,
    VaultAPIError,
    VaultClientError,
)
from libs.vault.factory import create_vault_client
from libs.vault.login import ClientStatus, Credential
from libs.vault.scheduler import RenewalScheduler
from libs.vault.schemas import ROOT_ADDRESS, LoginOptions, RetryPolicy, SecretRef
from libs.vault.store import SecretStore

__all__ = [
    # Client
    "VaultClient",
    "create_vault_client",
    # State
    "ClientStatus",
    "Credential",
    "SecretStore",
    "RenewalScheduler",
    # Schemas
    "LoginOptions",
    "RetryPolicy",
    "SecretRef",
    "ROOT_ADDRESS",
    # Events
    "EventBus",
    "EVENT_AUTHENTICATED",
    "EVENT_ERROR",
    "EVENT_LOGIN_ERROR",
    "EVENT_LOGOUT",
    "EVENT_SECRET",
    "secret_event",
    # Exceptions
    "VaultClientError",
    "ValidationError",
    "VaultAPIError",
    "TransientError",
    "TerminalError",
    "AuthenticationError",
    "SecretAccessError",
    "RetriesExhaustedError",
    "OperationCancelledError",
]
