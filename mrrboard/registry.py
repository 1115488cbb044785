"""
PlatformRegistry: discovers and holds the platforms a user can connect.

Usage:
    from mrrboard.registry import registry
    registry.discover()
    stripe = registry.get(Platform.STRIPE)   # None if switched off
    connectors = registry.all()              # page order: Stripe, Shopify, E-conomic
"""
from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import Dict, List, Optional

from mrrboard.integrations.models import Platform
from mrrboard.providers.base import PlatformConnector

logger = logging.getLogger(__name__)

PROVIDERS_PACKAGE = "mrrboard.providers"


class PlatformRegistry:
    def __init__(self) -> None:
        self._connectors: Dict[Platform, PlatformConnector] = {}
        self._discovered = False

    def discover(self) -> None:
        """
        Scan the providers package and instantiate every class that:
          1. Is a concrete subclass of PlatformConnector
          2. Returns True from is_available()
        Call once at app startup; calling again rescans.
        """
        self._connectors = {}
        pkg = importlib.import_module(PROVIDERS_PACKAGE)

        for _finder, mod_name, _ispkg in pkgutil.iter_modules(pkg.__path__):
            if mod_name in ("base", "__init__"):
                continue
            try:
                mod = importlib.import_module(f"{PROVIDERS_PACKAGE}.{mod_name}")
            except Exception as exc:
                logger.warning("Could not import platform module %s.%s: %s", PROVIDERS_PACKAGE, mod_name, exc)
                continue

            for attr_name in vars(mod):
                attr = getattr(mod, attr_name)
                if (
                    isinstance(attr, type)
                    and issubclass(attr, PlatformConnector)
                    and attr is not PlatformConnector
                    and not getattr(attr, "__abstractmethods__", None)
                    and attr.__module__ == mod.__name__
                ):
                    try:
                        if attr.is_available():
                            self.register(attr())
                        else:
                            logger.info("Platform %s is disabled", attr.key.value)
                    except Exception as exc:
                        logger.warning("Platform %s failed is_available() or init: %s", attr, exc)

        self._discovered = True

    def register(self, connector: PlatformConnector) -> None:
        self._connectors[connector.key] = connector
        logger.info("Registered platform: %s", connector.key.value)

    def _ensure(self) -> None:
        if not self._discovered:
            self.discover()

    def get(self, platform) -> Optional[PlatformConnector]:
        """Return the connector for a platform key, or None."""
        self._ensure()
        key = Platform.parse(platform)
        return self._connectors.get(key) if key is not None else None

    def all(self) -> List[PlatformConnector]:
        self._ensure()
        return sorted(self._connectors.values(), key=lambda c: (c.order, c.display_name))

    def status(self) -> dict:
        """Summary of the available platforms, suitable for a health endpoint."""
        return {"platforms": [c.key.value for c in self.all()]}


# shared by the app factory and the endpoints
registry = PlatformRegistry()
