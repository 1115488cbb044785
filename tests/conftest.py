"""
Shared pytest fixtures for the mrrboard test suite.

No test talks to the network: the API client is either a MagicMock with the
DashboardApiClient spec, or a real client wrapped around a mocked
requests.Session.
"""

from unittest.mock import MagicMock

import pytest

from mrrboard.api.client import DashboardApiClient
from mrrboard.config import DashboardConfig
from mrrboard.providers.base import RecordingNavigator
from mrrboard.registry import PlatformRegistry
from mrrboard.session import AuthSession, MemoryTokenStore
from tests.helpers import API_URL, make_response


@pytest.fixture(autouse=True)
def _no_disabled_platforms(monkeypatch):
    monkeypatch.delenv("MRRBOARD_DISABLED_PLATFORMS", raising=False)


@pytest.fixture
def config():
    return DashboardConfig(api_url=API_URL, redirect_delay_s=2.0, secret_key="test-secret")


@pytest.fixture
def http():
    """Mocked requests.Session; set http.request.return_value / side_effect per test."""
    session = MagicMock()
    session.headers = {}
    session.request.return_value = make_response(200, {"success": True, "data": {}})
    return session


@pytest.fixture
def redirects():
    return []


@pytest.fixture
def auth(redirects):
    return AuthSession(MemoryTokenStore(token="tok-123"), on_unauthorized=redirects.append)


@pytest.fixture
def api(config, auth, http):
    return DashboardApiClient(config, auth, http=http)


@pytest.fixture
def client():
    """Flow/view-level fake of the API client."""
    fake = MagicMock(spec=DashboardApiClient)
    fake.list_integrations.return_value = []
    fake.create_integration.return_value = {"success": True, "data": {"id": 1}}
    fake.sync_integration.return_value = {"success": True}
    fake.disconnect_integration.return_value = {"success": True}
    fake.delete_integration.return_value = {"success": True}
    return fake


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def platforms():
    reg = PlatformRegistry()
    reg.discover()
    return reg
