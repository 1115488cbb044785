"""Tests for AuthSession, config loading and log redaction."""

import pytest

from mrrboard.config import DashboardConfig
from mrrboard.errors import ConfigError
from mrrboard.session import AuthSession, MemoryTokenStore
from mrrboard.utils import redact_credentials


class TestAuthSession:

    def test_login_and_logout(self):
        session = AuthSession()

        session.login(" tok ", {"name": "Ada"})
        assert session.token == "tok"
        assert session.user == {"name": "Ada"}
        assert session.is_authenticated

        session.logout()
        assert session.token is None
        assert not session.is_authenticated

    def test_empty_token_rejected(self):
        with pytest.raises(ValueError):
            AuthSession().login("  ")

    def test_invalidate_is_idempotent(self):
        calls = []
        session = AuthSession(MemoryTokenStore(token="tok"), on_unauthorized=calls.append)

        assert session.invalidate() is True
        assert session.invalidate() is False
        assert calls == ["/login"]

    def test_invalidate_without_token_does_not_redirect(self):
        calls = []
        session = AuthSession(on_unauthorized=calls.append)

        assert session.invalidate() is False
        assert calls == []


class TestConfig:

    def test_api_url_required(self, monkeypatch):
        monkeypatch.delenv("MRRBOARD_API_URL", raising=False)

        with pytest.raises(ConfigError):
            DashboardConfig.from_env()

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("MRRBOARD_API_URL", "https://api.example.test/api/")
        for name in ("MRRBOARD_API_TIMEOUT_S", "MRRBOARD_DEBUG_MODE", "MRRBOARD_APP_NAME",
                     "MRRBOARD_REDIRECT_DELAY_S", "MRRBOARD_SYNC_POLL_S", "SECRET_KEY"):
            monkeypatch.delenv(name, raising=False)

        config = DashboardConfig.from_env()

        assert config.api_url == "https://api.example.test/api"
        assert config.api_timeout_s == 30.0
        assert config.redirect_delay_s == 2.0
        assert config.sync_poll_s == 30.0
        assert config.debug_mode is False
        assert config.app_name == "MRR Dashboard"
        assert config.api_endpoint("/integrations") == "https://api.example.test/api/integrations"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("MRRBOARD_API_URL", "https://api.example.test")
        monkeypatch.setenv("MRRBOARD_API_TIMEOUT_S", "5")
        monkeypatch.setenv("MRRBOARD_DEBUG_MODE", "true")
        monkeypatch.setenv("MRRBOARD_DISABLED_PLATFORMS", "economic")

        config = DashboardConfig.from_env()

        assert config.api_timeout_s == 5.0
        assert config.debug_mode is True
        assert config.disabled_platforms == frozenset({"economic"})

    @pytest.mark.parametrize("raw", ["abc", "0", "-1"])
    def test_bad_timeout(self, monkeypatch, raw):
        monkeypatch.setenv("MRRBOARD_API_URL", "https://api.example.test")
        monkeypatch.setenv("MRRBOARD_API_TIMEOUT_S", raw)

        with pytest.raises(ConfigError):
            DashboardConfig.from_env()


class TestRedaction:

    def test_stripe_key(self):
        assert "sk_live_abc123" not in redact_credentials("bad key sk_live_abc123 given")

    def test_shopify_token(self):
        assert redact_credentials("token shpat_0123abcd") == "token [SHOPIFY_TOKEN_HIDDEN]"

    def test_bearer(self):
        assert redact_credentials("Authorization: Bearer abc.def") == "Authorization: Bearer [TOKEN_HIDDEN]"

    def test_empty(self):
        assert redact_credentials("") == ""
