"""
Tests for libs/vault/auth - login strategies and registry.

Test Coverage:
    - Registry lookup, unknown names
    - Option validation per backend
    - Request shape of each backend (respx)
    - userpass 400 -> 401 re-tagging
    - aws-ec2 signature fetch and nonce resolution
"""

import json

import httpx
import pytest
import pytest_asyncio
import respx

from libs.vault.auth import (
    BACKENDS,
    AppRoleBackend,
    AwsEc2Backend,
    GithubBackend,
    UserpassBackend,
    default_backends,
    get_backend,
)
from libs.vault.auth.aws_ec2 import SIGNATURE_ENDPOINT
from libs.vault.exceptions import TransientError, ValidationError, VaultAPIError
from libs.vault.transport import VaultTransport

BASE_URL = "http://vault.test:8200/v1"
AUTH = {"client_token": "s.new", "lease_duration": 3600}


@pytest_asyncio.fixture()
async def transport():
    transport = VaultTransport(BASE_URL)
    yield transport
    await transport.aclose()


class TestRegistry:
    """Name -> backend resolution."""

    @pytest.mark.unit()
    def test_builtin_backends(self) -> None:
        assert set(BACKENDS) == {"userpass", "aws-ec2", "approle", "github"}

    @pytest.mark.unit()
    def test_default_backends_are_fresh_instances(self) -> None:
        first = default_backends()
        second = default_backends()
        assert first["userpass"] is not second["userpass"]

    @pytest.mark.unit()
    def test_unknown_backend_is_validation_error(self) -> None:
        with pytest.raises(ValidationError, match="Unknown auth backend 'ldap'"):
            get_backend("ldap", default_backends())


class TestOptionValidation:
    """validate_options() per backend."""

    @pytest.mark.unit()
    @pytest.mark.parametrize(
        ("backend", "raw"),
        [
            (UserpassBackend(), {"username": "app"}),
            (UserpassBackend(), {"username": "", "password": "p"}),
            (AppRoleBackend(), {"secret_id": "s"}),
            (GithubBackend(), {}),
            (AwsEc2Backend(), {"nonce": 42}),
        ],
    )
    def test_invalid_options(self, backend, raw: dict) -> None:
        with pytest.raises(ValidationError):
            backend.validate_options(raw)

    @pytest.mark.unit()
    def test_password_is_secret(self) -> None:
        options = UserpassBackend().validate_options({"username": "app", "password": "hunter2"})
        assert "hunter2" not in repr(options)


class TestUserpassBackend:
    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_login_posts_password(self, transport: VaultTransport) -> None:
        route = respx.post(f"{BASE_URL}/auth/userpass/login/app").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = UserpassBackend()
        options = backend.validate_options({"username": "app", "password": "hunter2"})

        auth = await backend.login(transport, options)

        assert auth == AUTH
        assert json.loads(route.calls.last.request.content) == {"password": "hunter2"}

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_custom_mount_point(self, transport: VaultTransport) -> None:
        route = respx.post(f"{BASE_URL}/auth/ldap-users/login/app").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = UserpassBackend()
        options = backend.validate_options(
            {"username": "app", "password": "p", "mount_point": "/auth/ldap-users/"}
        )

        await backend.login(transport, options)

        assert route.called

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_username_is_quoted_into_one_segment(self, transport: VaultTransport) -> None:
        route = respx.route(method="POST", url__startswith=BASE_URL).mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = UserpassBackend()
        options = backend.validate_options({"username": "ops/admin?x=1", "password": "p"})

        await backend.login(transport, options)

        request = route.calls.last.request
        assert request.url.raw_path == b"/v1/auth/userpass/login/ops%2Fadmin%3Fx%3D1"
        assert request.url.query == b""

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_bad_credentials_retagged_as_401(self, transport: VaultTransport) -> None:
        respx.post(f"{BASE_URL}/auth/userpass/login/app").mock(
            return_value=httpx.Response(400, json={"errors": ["invalid username or password"]})
        )
        backend = UserpassBackend()
        options = backend.validate_options({"username": "app", "password": "wrong"})

        with pytest.raises(VaultAPIError) as exc_info:
            await backend.login(transport, options)

        assert exc_info.value.status == 401
        assert "Incorrect username/password" in str(exc_info.value)

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_server_error_not_retagged(self, transport: VaultTransport) -> None:
        respx.post(f"{BASE_URL}/auth/userpass/login/app").mock(return_value=httpx.Response(503))
        backend = UserpassBackend()
        options = backend.validate_options({"username": "app", "password": "p"})

        with pytest.raises(TransientError):
            await backend.login(transport, options)


class TestAppRoleBackend:
    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_login_payload(self, transport: VaultTransport) -> None:
        route = respx.post(f"{BASE_URL}/auth/approle/login").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = AppRoleBackend()
        options = backend.validate_options({"role_id": "role-1", "secret_id": "sec-1"})

        assert await backend.login(transport, options) == AUTH
        assert json.loads(route.calls.last.request.content) == {
            "role_id": "role-1",
            "secret_id": "sec-1",
        }

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_secret_id_optional(self, transport: VaultTransport) -> None:
        route = respx.post(f"{BASE_URL}/auth/approle/login").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = AppRoleBackend()

        await backend.login(transport, backend.validate_options({"role_id": "role-1"}))

        assert json.loads(route.calls.last.request.content) == {"role_id": "role-1"}


class TestGithubBackend:
    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_login_payload(self, transport: VaultTransport) -> None:
        route = respx.post(f"{BASE_URL}/auth/github/login").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = GithubBackend()

        await backend.login(transport, backend.validate_options({"token": "ghp_x"}))

        assert json.loads(route.calls.last.request.content) == {"token": "ghp_x"}

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_missing_auth_block_returns_none(self, transport: VaultTransport) -> None:
        respx.post(f"{BASE_URL}/auth/github/login").mock(
            return_value=httpx.Response(200, json={"warnings": ["odd"]})
        )
        backend = GithubBackend()

        assert await backend.login(transport, backend.validate_options({"token": "t"})) is None


class TestAwsEc2Backend:
    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_signature_fetched_and_posted(self, transport: VaultTransport) -> None:
        respx.get(SIGNATURE_ENDPOINT).mock(
            return_value=httpx.Response(200, text="MIAGCSqGSIb3DQEH\nAqCAMIACAQEx\n")
        )
        login = respx.post(f"{BASE_URL}/auth/aws-ec2/login").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = AwsEc2Backend()
        options = backend.validate_options({"role": "web", "nonce": "n-1"})

        assert await backend.login(transport, options) == AUTH
        assert json.loads(login.calls.last.request.content) == {
            "pkcs7": "MIAGCSqGSIb3DQEHAqCAMIACAQEx",
            "role": "web",
            "nonce": "n-1",
        }

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_optional_fields_omitted(self, transport: VaultTransport) -> None:
        respx.get(SIGNATURE_ENDPOINT).mock(return_value=httpx.Response(200, text="sig"))
        login = respx.post(f"{BASE_URL}/auth/aws-ec2/login").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = AwsEc2Backend()

        await backend.login(transport, backend.validate_options({}))

        assert json.loads(login.calls.last.request.content) == {"pkcs7": "sig"}

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_callable_nonce_sync_and_async(self, transport: VaultTransport) -> None:
        respx.get(SIGNATURE_ENDPOINT).mock(return_value=httpx.Response(200, text="sig"))
        login = respx.post(f"{BASE_URL}/auth/aws-ec2/login").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = AwsEc2Backend()

        async def async_nonce() -> str:
            return "from-coroutine"

        await backend.login(transport, backend.validate_options({"nonce": lambda: "from-sync"}))
        await backend.login(transport, backend.validate_options({"nonce": async_nonce}))

        nonces = [json.loads(call.request.content)["nonce"] for call in login.calls]
        assert nonces == ["from-sync", "from-coroutine"]

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    async def test_non_string_nonce_rejected(self, transport: VaultTransport) -> None:
        backend = AwsEc2Backend()

        with pytest.raises(ValidationError, match="nonce"):
            await backend.login(transport, backend.validate_options({"nonce": lambda: 7}))

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock(assert_all_called=False)
    async def test_metadata_unreachable_is_transient(
        self, transport: VaultTransport, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get(SIGNATURE_ENDPOINT).mock(side_effect=httpx.ConnectTimeout("no metadata"))
        login = respx_mock.post(f"{BASE_URL}/auth/aws-ec2/login")
        backend = AwsEc2Backend()

        with pytest.raises(TransientError) as exc_info:
            await backend.login(transport, backend.validate_options({}))

        assert exc_info.value.path == SIGNATURE_ENDPOINT
        assert not login.called

    @pytest.mark.unit()
    @pytest.mark.asyncio()
    @respx.mock
    async def test_vault_token_not_sent_to_metadata_endpoint(self) -> None:
        transport = VaultTransport(BASE_URL, token_provider=lambda: "s.current")
        metadata = respx.get(SIGNATURE_ENDPOINT).mock(return_value=httpx.Response(200, text="sig"))
        respx.post(f"{BASE_URL}/auth/aws-ec2/login").mock(
            return_value=httpx.Response(200, json={"auth": AUTH})
        )
        backend = AwsEc2Backend()

        await backend.login(transport, backend.validate_options({}))

        assert "X-Vault-Token" not in metadata.calls.last.request.headers
        await transport.aclose()
