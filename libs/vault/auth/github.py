"""GitHub personal access token login strategy."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, SecretStr

from libs.vault.auth.base import AuthBackend, auth_block
from libs.vault.transport import VaultTransport


class GithubOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: SecretStr
    mount_point: str = "auth/github"


class GithubBackend(AuthBackend):
    name = "github"
    options_model = GithubOptions

    async def login(
        self, transport: VaultTransport, options: GithubOptions
    ) -> Mapping[str, Any] | None:
        response = await transport.post(
            f"/{options.mount_point.strip('/')}/login",
            json={"token": options.token.get_secret_value()},
        )
        return auth_block(response)
