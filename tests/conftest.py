"""Shared pytest fixtures for SuperSDR tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from supersdr.whatsapp.registry import AdapterRegistry  # noqa: E402


@pytest.fixture
def registry() -> AdapterRegistry:
    """Fresh registry with the built-in adapters, independent per test."""
    return AdapterRegistry()


@pytest.fixture(autouse=True)
def _clear_webhook_env(monkeypatch):
    """Webhook auth/verification is driven by env vars; start every test without them."""
    for name in ("META_APP_SECRET", "WEBHOOK_SECRET", "WHATSAPP_VERIFY_TOKEN"):
        monkeypatch.delenv(name, raising=False)
