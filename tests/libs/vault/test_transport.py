"""
Tests for libs/vault/transport.py - authenticated HTTP transport.

HTTP is mocked with respx; no network access.
"""

import httpx
import pytest
import pytest_asyncio
import respx

from libs.vault.exceptions import TransientError, VaultAPIError
from libs.vault.transport import NAMESPACE_HEADER, TOKEN_HEADER, VaultTransport

BASE_URL = "http://vault.test:8200/v1"


@pytest.fixture()
def token() -> dict[str, str]:
    return {"value": "s.token"}


@pytest_asyncio.fixture()
async def transport(token: dict[str, str]):
    transport = VaultTransport(BASE_URL, token_provider=lambda: token["value"])
    yield transport
    await transport.aclose()


class TestHeaders:
    """Request hook behavior."""

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_token_header_attached(self, transport: VaultTransport) -> None:
        route = respx.get(f"{BASE_URL}/secret/foo").mock(
            return_value=httpx.Response(200, json={"data": {"foo": "bar"}})
        )

        await transport.get("/secret/foo")

        assert route.calls.last.request.headers[TOKEN_HEADER] == "s.token"

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_token_read_per_request(
        self, transport: VaultTransport, token: dict[str, str]
    ) -> None:
        route = respx.get(f"{BASE_URL}/secret/foo").mock(return_value=httpx.Response(200, json={}))

        await transport.get("/secret/foo")
        token["value"] = "s.rotated"
        await transport.get("/secret/foo")

        assert route.calls[0].request.headers[TOKEN_HEADER] == "s.token"
        assert route.calls[1].request.headers[TOKEN_HEADER] == "s.rotated"

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_no_token_no_header(self) -> None:
        transport = VaultTransport(BASE_URL, namespace="team-a")
        route = respx.get(f"{BASE_URL}/sys/health").mock(return_value=httpx.Response(200, json={}))

        await transport.get("sys/health")

        request = route.calls.last.request
        assert TOKEN_HEADER not in request.headers
        assert request.headers[NAMESPACE_HEADER] == "team-a"
        await transport.aclose()


class TestResponses:
    """Status handling and body decoding."""

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_json_body_returned(self, transport: VaultTransport) -> None:
        respx.post(f"{BASE_URL}/auth/approle/login").mock(
            return_value=httpx.Response(200, json={"auth": {"client_token": "t"}})
        )

        response = await transport.request("POST", "/auth/approle/login", json={"role_id": "r"})

        assert response.status == 200
        assert response.data == {"auth": {"client_token": "t"}}

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_empty_body_is_none(self, transport: VaultTransport) -> None:
        respx.post(f"{BASE_URL}/auth/token/revoke-self").mock(return_value=httpx.Response(204))

        assert await transport.post("/auth/token/revoke-self") is None

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_4xx_raises_api_error_with_errors(self, transport: VaultTransport) -> None:
        respx.get(f"{BASE_URL}/secret/missing").mock(
            return_value=httpx.Response(404, json={"errors": ["no secret here"]})
        )

        with pytest.raises(VaultAPIError) as exc_info:
            await transport.get("/secret/missing")

        assert exc_info.value.status == 404
        assert exc_info.value.errors == ["no secret here"]
        assert exc_info.value.path == "/secret/missing"
        assert "no secret here" in str(exc_info.value)

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_5xx_raises_transient_error(self, transport: VaultTransport) -> None:
        respx.get(f"{BASE_URL}/secret/foo").mock(return_value=httpx.Response(503))

        with pytest.raises(TransientError) as exc_info:
            await transport.get("/secret/foo")

        assert exc_info.value.status == 503

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_connection_error_raises_transient_error(self, transport: VaultTransport) -> None:
        respx.get(f"{BASE_URL}/secret/foo").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(TransientError) as exc_info:
            await transport.get("/secret/foo")

        assert exc_info.value.status is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_timeout_raises_transient_error(self, transport: VaultTransport) -> None:
        respx.get(f"{BASE_URL}/secret/foo").mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(TransientError, match="timed out"):
            await transport.get("/secret/foo")
