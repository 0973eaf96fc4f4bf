"""
Abstract AuthBackend interface for pluggable login strategies.

Architecture:
    AuthBackend (ABC)
    ├── UserpassBackend - username/password (userpass.py)
    ├── AwsEc2Backend - signed EC2 instance identity document (aws_ec2.py)
    ├── AppRoleBackend - role_id/secret_id (approle.py)
    └── GithubBackend - GitHub personal access token (github.py)

A backend performs the outbound calls for one login and returns the raw
``auth`` block. It never retries and never touches client state; the login
orchestrator owns retry, response validation and credential installation.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

from pydantic import BaseModel

from libs.vault.schemas import parse_model
from libs.vault.transport import VaultTransport


class AuthBackend(ABC):
    """
    Base class for all login strategies.

    Subclasses set ``name`` (the ``backend_name`` callers select it with)
    and ``options_model`` (the pydantic model for ``backend_options``).
    """

    name: ClassVar[str]
    options_model: ClassVar[type[BaseModel]]

    def validate_options(self, options: Mapping[str, Any] | BaseModel) -> BaseModel:
        """
        Validate raw backend options.

        Raises:
            ValidationError: Options do not match ``options_model``
        """
        return parse_model(self.options_model, options, f"{self.name} options")

    @abstractmethod
    async def login(self, transport: VaultTransport, options: Any) -> Mapping[str, Any] | None:
        """
        Perform one login attempt.

        Args:
            transport: Authenticated transport bound to the vault server
            options: Instance of ``options_model`` (already validated)

        Returns:
            The ``auth`` block of the login response (validated by the caller)

        Raises:
            VaultAPIError: The service rejected the login (status attached)
            TransientError: Network failure or 5xx-class response
        """


def auth_block(response: Any) -> Any:
    """Extract ``auth`` from a login response body; None if absent."""
    if isinstance(response, Mapping):
        return response.get("auth")
    return None
