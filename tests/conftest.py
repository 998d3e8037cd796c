import asyncio

import httpx
import pytest

from fake_backend import FakeBackend
from fake_socket import StubSocketClient
from socialsync.clients import ApiClient
from socialsync.config import get_settings
from socialsync.services import ConnectionManager


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("SOCIALSYNC_TOKEN_PATH", str(tmp_path / "session.json"))
    monkeypatch.setenv("SOCIALSYNC_RETRY_BASE_DELAY", "0")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def api(backend: FakeBackend) -> ApiClient:
    return ApiClient("http://testserver", token="token-u1", transport=httpx.ASGITransport(app=backend.app))


@pytest.fixture
def socket_client() -> StubSocketClient:
    return StubSocketClient()


@pytest.fixture
def connection(socket_client: StubSocketClient) -> ConnectionManager:
    manager = ConnectionManager("token-u1", url="http://testserver", client_factory=lambda: socket_client)
    assert asyncio.run(manager.connect()) is True
    socket_client.emitted.clear()
    return manager
