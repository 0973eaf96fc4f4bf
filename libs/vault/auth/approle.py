"""AppRole login strategy (machine identity via role_id/secret_id)."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from libs.vault.auth.base import AuthBackend, auth_block
from libs.vault.transport import VaultTransport


class AppRoleOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role_id: str = Field(..., min_length=1)
    secret_id: SecretStr | None = None
    mount_point: str = "auth/approle"


class AppRoleBackend(AuthBackend):
    """``POST {mount_point}/login`` with ``role_id`` and optional ``secret_id``."""

    name = "approle"
    options_model = AppRoleOptions

    async def login(
        self, transport: VaultTransport, options: AppRoleOptions
    ) -> Mapping[str, Any] | None:
        payload: dict[str, Any] = {"role_id": options.role_id}
        if options.secret_id is not None:
            payload["secret_id"] = options.secret_id.get_secret_value()
        response = await transport.post(f"/{options.mount_point.strip('/')}/login", json=payload)
        return auth_block(response)
