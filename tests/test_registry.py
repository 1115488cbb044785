"""Tests for PlatformRegistry discovery."""

from mrrboard.integrations.models import Platform
from mrrboard.providers.economic import EconomicConnector
from mrrboard.providers.shopify import ShopifyConnector
from mrrboard.providers.stripe import StripeConnector
from mrrboard.registry import PlatformRegistry


class TestDiscovery:

    def test_discovers_all_platforms_in_page_order(self, platforms):
        connectors = platforms.all()

        assert [type(c) for c in connectors] == [StripeConnector, ShopifyConnector, EconomicConnector]
        assert platforms.status() == {"platforms": ["stripe", "shopify", "economic"]}

    def test_disabled_platform_is_skipped(self, monkeypatch):
        monkeypatch.setenv("MRRBOARD_DISABLED_PLATFORMS", " Shopify , economic")
        reg = PlatformRegistry()
        reg.discover()

        assert [c.key for c in reg.all()] == [Platform.STRIPE]
        assert reg.get(Platform.SHOPIFY) is None

    def test_get_accepts_strings_and_legacy_spelling(self, platforms):
        assert isinstance(platforms.get("stripe"), StripeConnector)
        assert isinstance(platforms.get("e-conomic"), EconomicConnector)
        assert platforms.get("paypal") is None
        assert platforms.get(None) is None

    def test_get_discovers_lazily(self):
        reg = PlatformRegistry()
        assert isinstance(reg.get(Platform.STRIPE), StripeConnector)

    def test_rediscover_replaces_connectors(self, platforms, monkeypatch):
        monkeypatch.setenv("MRRBOARD_DISABLED_PLATFORMS", "stripe")
        platforms.discover()

        assert platforms.get(Platform.STRIPE) is None


class TestConnectors:

    def test_describe(self, platforms):
        info = platforms.get(Platform.STRIPE).describe()

        assert info == {
            "key": "stripe",
            "display_name": "Stripe",
            "description": "Encrypted API key connection to Stripe",
            "connection_type": "API Key (Encrypted)",
        }

    def test_matches_name(self):
        connector = EconomicConnector()

        assert connector.matches_name("My E-conomic agreement")
        assert connector.matches_name("economic")
        assert not connector.matches_name("Stripe")
        assert not connector.matches_name("")
