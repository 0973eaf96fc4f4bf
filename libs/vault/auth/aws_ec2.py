"""
AWS EC2 instance identity login strategy.

Flow:
    1. Resolve the nonce (a string, or a zero-argument callable returning a
       string or an awaitable)
    2. GET the PKCS#7 signature of the instance identity document from the
       EC2 metadata endpoint (no vault token is sent there)
    3. POST {mount_point}/login with ``pkcs7`` plus optional ``role``/``nonce``
"""

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from libs.vault.auth.base import AuthBackend, auth_block
from libs.vault.exceptions import TransientError, ValidationError
from libs.vault.transport import VaultTransport, raise_for_status

logger = logging.getLogger(__name__)

SIGNATURE_ENDPOINT = "http://169.254.169.254/latest/dynamic/instance-identity/pkcs7"


class AwsEc2Options(BaseModel):
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    role: str | None = None
    nonce: str | Callable[[], Any] | None = None
    mount_point: str = "auth/aws-ec2"
    signature_url: str = SIGNATURE_ENDPOINT
    metadata_timeout: float = Field(default=2.0, gt=0)


class AwsEc2Backend(AuthBackend):
    """Presents the signed identity document of the running EC2 instance."""

    name = "aws-ec2"
    options_model = AwsEc2Options

    def __init__(self, metadata_client: httpx.AsyncClient | None = None) -> None:
        self._metadata_client = metadata_client

    async def _resolve_nonce(self, nonce: str | Callable[[], Any] | None) -> str | None:
        if nonce is None or isinstance(nonce, str):
            return nonce
        value = nonce()
        if inspect.isawaitable(value):
            value = await value
        if not isinstance(value, str):
            raise ValidationError("aws-ec2 nonce callable must return a string")
        return value

    async def _fetch_signature(self, options: AwsEc2Options) -> str:
        client = self._metadata_client or httpx.AsyncClient(timeout=options.metadata_timeout)
        try:
            response = await client.get(options.signature_url)
        except httpx.HTTPError as exc:
            raise TransientError(
                f"Unable to fetch identity document signature: {exc}",
                path=options.signature_url,
            ) from exc
        finally:
            if self._metadata_client is None:
                await client.aclose()

        raise_for_status(response, options.signature_url)
        return response.text.replace("\n", "")

    async def login(
        self, transport: VaultTransport, options: AwsEc2Options
    ) -> Mapping[str, Any] | None:
        nonce = await self._resolve_nonce(options.nonce)
        pkcs7 = await self._fetch_signature(options)

        payload: dict[str, Any] = {"pkcs7": pkcs7}
        if options.role is not None:
            payload["role"] = options.role
        if nonce is not None:
            payload["nonce"] = nonce

        logger.debug("Logging in with EC2 identity", extra={"role": options.role})
        response = await transport.post(f"/{options.mount_point.strip('/')}/login", json=payload)
        return auth_block(response)
