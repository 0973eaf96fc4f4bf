"""
Authenticated HTTP transport for the vault service.

Thin wrapper over ``httpx.AsyncClient``:
    - A request event hook attaches ``X-Vault-Token`` (from the client's
      current credential) and ``X-Vault-Namespace`` to every request
    - Non-2xx responses raise VaultAPIError (4xx) or TransientError (5xx)
    - httpx timeouts and connection errors raise TransientError
    - JSON bodies are decoded; empty bodies (204, HEAD) decode to None

Retries are NOT performed here; see libs/vault/retry.py.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from libs.vault.exceptions import TransientError, VaultAPIError

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Vault-Token"
NAMESPACE_HEADER = "X-Vault-Namespace"


@dataclass(frozen=True)
class VaultResponse:
    """Status and decoded body of a successful request."""

    status: int
    data: Any


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_messages(body: Any) -> list[Any]:
    if isinstance(body, dict) and isinstance(body.get("errors"), list):
        return body["errors"]
    return []


def raise_for_status(response: httpx.Response, path: str) -> None:
    """Translate an error response into the client's exception types."""
    if response.is_success:
        return
    body = _decode_body(response)
    errors = _error_messages(body)
    detail = "; ".join(str(e) for e in errors) if errors else response.reason_phrase
    message = f"Vault API error: {detail}"
    if response.status_code >= 500:
        raise TransientError(message, status=response.status_code, path=path)
    raise VaultAPIError(message, status=response.status_code, path=path, errors=errors)


class VaultTransport:
    """
    HTTP client bound to one vault server.

    Example:
        >>> transport = VaultTransport("https://vault.example.com:8200/v1",
        ...                            token_provider=lambda: credential.token)
        >>> data = await transport.get("/secret/foo")
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: Callable[[], str | None] | None = None,
        namespace: str | None = None,
        timeout: float = 10.0,
        verify: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.namespace = namespace
        self._token_provider = token_provider or (lambda: None)
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            verify=verify,
        )
        self._client.event_hooks["request"].append(self._attach_headers)

    def set_token_provider(self, token_provider: Callable[[], str | None]) -> None:
        self._token_provider = token_provider

    async def _attach_headers(self, request: httpx.Request) -> None:
        token = self._token_provider()
        if token:
            request.headers[TOKEN_HEADER] = token
        if self.namespace:
            request.headers[NAMESPACE_HEADER] = self.namespace

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> VaultResponse:
        """
        Send one request relative to ``base_url``.

        Raises:
            VaultAPIError: 4xx response
            TransientError: 5xx response, timeout or connection failure
        """
        url = path.lstrip("/")
        try:
            response = await self._client.request(
                method.upper(), url, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise TransientError(f"Request timed out: {exc}", path=path) from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Connection failed: {exc}", path=path) from exc

        logger.debug(
            "Vault request completed",
            extra={"method": method.upper(), "path": path, "status": response.status_code},
        )
        raise_for_status(response, path)
        return VaultResponse(status=response.status_code, data=_decode_body(response))

    async def get(self, path: str, **kwargs: Any) -> Any:
        return (await self.request("GET", path, **kwargs)).data

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return (await self.request("POST", path, json=json, **kwargs)).data

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return (await self.request("PUT", path, json=json, **kwargs)).data

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return (await self.request("PATCH", path, json=json, **kwargs)).data

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return (await self.request("DELETE", path, **kwargs)).data

    async def head(self, path: str, **kwargs: Any) -> Any:
        return (await self.request("HEAD", path, **kwargs)).data

    async def aclose(self) -> None:
        await self._client.aclose()
