"""
Login strategy registry.

Maps ``backend_name`` to an AuthBackend class. Each client builds its own
instances via ``default_backends()`` and may add or override entries, so an
unknown name resolves to a ValidationError instead of a runtime crash.

Quick Start:
    >>> from libs.vault.auth import get_backend, default_backends
    >>> backend = get_backend("userpass", default_backends())
"""

from collections.abc import Mapping

from libs.vault.auth.approle import AppRoleBackend, AppRoleOptions
from libs.vault.auth.aws_ec2 import AwsEc2Backend, AwsEc2Options
from libs.vault.auth.base import AuthBackend
from libs.vault.auth.github import GithubBackend, GithubOptions
from libs.vault.auth.userpass import UserpassBackend, UserpassOptions
from libs.vault.exceptions import ValidationError

BACKENDS: dict[str, type[AuthBackend]] = {
    backend.name: backend
    for backend in (UserpassBackend, AwsEc2Backend, AppRoleBackend, GithubBackend)
}


def default_backends() -> dict[str, AuthBackend]:
    """Fresh instances of every built-in backend, keyed by name."""
    return {name: backend_cls() for name, backend_cls in BACKENDS.items()}


def get_backend(name: str, registry: Mapping[str, AuthBackend]) -> AuthBackend:
    """
    Resolve ``name`` in ``registry``.

    Raises:
        ValidationError: ``name`` is not a known backend
    """
    backend = registry.get(name)
    if backend is None:
        known = ", ".join(sorted(registry))
        raise ValidationError(f"Unknown auth backend '{name}' (known: {known})")
    return backend


__all__ = [
    "AuthBackend",
    "BACKENDS",
    "default_backends",
    "get_backend",
    "AppRoleBackend",
    "AppRoleOptions",
    "AwsEc2Backend",
    "AwsEc2Options",
    "GithubBackend",
    "GithubOptions",
    "UserpassBackend",
    "UserpassOptions",
]
