"""Tests for libs/vault/exceptions.py - error context rendering."""

import pytest

from libs.vault.exceptions import (
    AuthenticationError,
    RetriesExhaustedError,
    SecretAccessError,
    TerminalError,
    TransientError,
    ValidationError,
    VaultAPIError,
    VaultClientError,
)


class TestVaultClientError:
    @pytest.mark.unit()
    def test_message_only(self) -> None:
        assert str(VaultClientError("boom")) == "boom"

    @pytest.mark.unit()
    def test_context_rendered(self) -> None:
        error = VaultClientError("Request failed", status=503, path="/secret/foo")
        assert str(error) == "Request failed (status: 503, path: /secret/foo)"

    @pytest.mark.unit()
    def test_hierarchy(self) -> None:
        assert issubclass(AuthenticationError, TerminalError)
        assert issubclass(SecretAccessError, TerminalError)
        for cls in (ValidationError, VaultAPIError, TransientError, RetriesExhaustedError):
            assert issubclass(cls, VaultClientError)


class TestValidationError:
    @pytest.mark.unit()
    def test_errors_default_empty(self) -> None:
        assert ValidationError("bad").errors == []
        assert ValidationError("bad").status is None


class TestRetriesExhaustedError:
    @pytest.mark.unit()
    def test_mirrors_last_error(self) -> None:
        last = TransientError("Vault API error: sealed", status=503, path="/secret/foo")
        error = RetriesExhaustedError(last, attempts=11)

        assert error.message == "Vault API error: sealed"
        assert error.status == 503
        assert error.path == "/secret/foo"
        assert error.attempts == 11
        assert error.last_error is last

    @pytest.mark.unit()
    def test_plain_exception(self) -> None:
        error = RetriesExhaustedError(ConnectionResetError(), attempts=2)
        assert error.message == "ConnectionResetError"
        assert error.status is None
