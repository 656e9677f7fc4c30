"""
This conftest.py provides fixtures shared by all apps.
"""

import typing as t

import httpx
import pytest
from pytest import MonkeyPatch


@pytest.fixture(autouse=True)
def reset_wallet_service(monkeypatch: MonkeyPatch) -> None:
    """Start every test without a cached WalletService.

    The singleton caches its certificate resolver, which reads settings on
    creation, so it must not leak between tests.
    """
    monkeypatch.setattr("wallet.service._wallet_service", None)


@pytest.fixture(autouse=True)
def block_blob_downloads(monkeypatch: MonkeyPatch) -> None:
    """Prevent real certificate blob downloads during tests.

    Fetchers built without an explicit transport get one that refuses every
    request, so a test that forgets to mock the blob store fails loudly.
    """

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"Network access blocked in tests: {request.url}", request=request)

    monkeypatch.setattr(httpx, "HTTPTransport", lambda **kwargs: httpx.MockTransport(refuse))


@pytest.fixture(autouse=True)
def api_key(settings: t.Any) -> None:
    """Configure a known service API key."""
    settings.WALLET_API_KEY = "test-api-key"
