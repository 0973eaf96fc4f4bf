"""
Root conftest for all tests.

Clears the cached settings around every test so VAULT_* environment
overrides applied with monkeypatch never leak between tests.
"""

import pytest

from config.settings import get_settings


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
