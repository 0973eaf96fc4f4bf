"""
Factory for creating VaultClient instances from environment configuration.

Settings come from ``config.settings.VaultSettings`` (VAULT_* environment
variables or .env). Keyword overrides win over settings, so tests and
embedding applications can pin individual values without touching the
environment.

Example Usage:
    >>> import os
    >>> os.environ["VAULT_URL"] = "https://vault.example.com:8200/v1"
    >>> client = create_vault_client()
    >>> client.url
    'https://vault.example.com:8200/v1'

    >>> client = create_vault_client(retry_policy={"max_retries": 3})

Environment Variables:
    VAULT_URL (str): API base URL (default: "http://127.0.0.1:8200/v1")
    VAULT_NAMESPACE (str, optional): Sent as X-Vault-Namespace
    VAULT_TIMEOUT_SECONDS (float): HTTP timeout (default: 10)
    VAULT_VERIFY_TLS (bool): Verify TLS certificates (default: true)
    VAULT_RETRY_* : Client-wide retry policy defaults
    VAULT_LOG_LEVEL / VAULT_SERVICE_NAME: Used when configure_logs=True

See Also:
    - config/settings.py - VaultSettings
    - libs/vault/client.py - VaultClient
"""

import logging
from typing import Any

from config.settings import VaultSettings, get_settings
from libs.common.logging import configure_logging
from libs.vault.client import VaultClient

logger = logging.getLogger(__name__)


def create_vault_client(
    settings: VaultSettings | None = None,
    *,
    configure_logs: bool = False,
    **overrides: Any,
) -> VaultClient:
    """
    Create a VaultClient configured from settings.

    Args:
        settings: Explicit settings; defaults to the cached ``get_settings()``
        configure_logs: Also install JSON logging with the settings' level
            and service name (for standalone processes)
        **overrides: Any VaultClient keyword argument (url, retry_policy,
            namespace, timeout, verify, transport, scheduler, backends);
            explicit values win over settings

    Returns:
        VaultClient: A client that has not logged in yet

    Raises:
        ValidationError: The resulting retry policy is invalid
    """
    settings = settings or get_settings()

    if configure_logs:
        configure_logging(service_name=settings.service_name, log_level=settings.log_level)

    policy = settings.default_retry_policy()
    if "retry_policy" in overrides:
        policy = policy.merged(overrides.pop("retry_policy"))

    options: dict[str, Any] = {
        "namespace": settings.namespace,
        "timeout": settings.timeout_seconds,
        "verify": settings.verify_tls,
    }
    options.update(overrides)
    url = options.pop("url", settings.url)

    logger.info(
        "Creating vault client",
        extra={"url": url, "namespace": options.get("namespace")},
    )
    return VaultClient(url, retry_policy=policy, **options)
