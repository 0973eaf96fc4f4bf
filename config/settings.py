"""
Vault client settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
All settings can be overridden via VAULT_* environment variables or .env file.
"""

from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from libs.vault.schemas import RetryPolicy


class VaultSettings(BaseSettings):
    """
    Vault client configuration.

    Example .env:
        VAULT_URL=https://vault.example.com:8200/v1
        VAULT_NAMESPACE=team-a
        VAULT_RETRY_MAX_RETRIES=5
    """

    model_config = SettingsConfigDict(
        env_prefix="VAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unrelated VAULT_* vars (e.g. VAULT_ADDR for the CLI)
    )

    # Connection
    url: str = Field(
        default="http://127.0.0.1:8200/v1",
        description="Base URL of the vault HTTP API, including the version prefix",
    )
    namespace: str | None = Field(
        default=None,
        description="Namespace sent as X-Vault-Namespace (enterprise only)",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="HTTP timeout per request in seconds",
    )
    verify_tls: bool = Field(
        default=True,
        description="Verify the server's TLS certificate",
    )

    # Retry policy (client-wide default; calls may override per field)
    retry_max_retries: int | None = Field(
        default=10,
        ge=0,
        description="Retries after the first attempt; empty means retry forever",
    )
    retry_min_delay: float = Field(default=1.0, gt=0, description="First backoff delay (s)")
    retry_max_delay: float = Field(default=10.0, gt=0, description="Backoff ceiling (s)")
    retry_backoff_factor: float = Field(default=2.0, ge=1, description="Backoff growth factor")
    retry_jitter: bool = Field(default=False, description="Randomize backoff delays")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    service_name: str = Field(
        default="vault-client",
        description="Service name stamped on every JSON log record",
    )

    def default_retry_policy(self) -> "RetryPolicy":
        """Client-wide RetryPolicy built from the retry_* settings."""
        # libs.vault imports this module through its factory
        from libs.vault.schemas import RetryPolicy

        return RetryPolicy(
            max_retries=self.retry_max_retries,
            min_delay=self.retry_min_delay,
            max_delay=self.retry_max_delay,
            backoff_factor=self.retry_backoff_factor,
            jitter=self.retry_jitter,
        )


@lru_cache
def get_settings() -> VaultSettings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.

    Example:
        >>> settings = get_settings()
        >>> print(settings.url)
        'http://127.0.0.1:8200/v1'
    """
    return VaultSettings()
