"""Username/password login strategy."""

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from libs.vault.auth.base import AuthBackend, auth_block
from libs.vault.exceptions import VaultAPIError
from libs.vault.transport import VaultTransport


class UserpassOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    username: str = Field(..., min_length=1)
    password: SecretStr
    mount_point: str = "auth/userpass"


class UserpassBackend(AuthBackend):
    """
    ``POST {mount_point}/login/{username}`` with the password.

    The service answers a wrong password with 400; it is re-tagged 401 so
    the failure reads as the authentication rejection it is.
    """

    name = "userpass"
    options_model = UserpassOptions

    async def login(
        self, transport: VaultTransport, options: UserpassOptions
    ) -> Mapping[str, Any] | None:
        path = f"/{options.mount_point.strip('/')}/login/{quote(options.username, safe='')}"
        try:
            response = await transport.post(
                path, json={"password": options.password.get_secret_value()}
            )
        except VaultAPIError as exc:
            if exc.status == 400:
                raise VaultAPIError(
                    "Incorrect username/password combination",
                    status=401,
                    path=exc.path,
                    errors=exc.errors,
                ) from exc
            raise
        return auth_block(response)
