"""
Per-shop access tokens under a Shopify Partner integration.

Partner API access gives app-level data only; a shop-specific Admin token
unlocks customer-level data for that one store. Tokens are added and removed
independently of the parent integration's lifecycle.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from mrrboard.errors import ApiError, UnauthorizedError
from mrrboard.integrations.models import Shop

logger = logging.getLogger(__name__)


class ShopsManager:
    def __init__(self, client, integration_id: Optional[int] = None) -> None:
        self._client = client
        self.integration_id = integration_id
        self.shops: List[Shop] = []
        self.error: Optional[str] = None

    def load(self) -> bool:
        try:
            self.shops = self._client.list_shops()
        except UnauthorizedError:
            raise
        except ApiError as e:
            self.error = e.message or "Failed to load shops"
            return False
        return True

    def get(self, shop_domain: str) -> Optional[Shop]:
        return next((s for s in self.shops if s.shop_domain == shop_domain), None)

    def store_token(self, shop_domain: str, access_token: str) -> bool:
        token = (access_token or "").strip()
        if not shop_domain or not token:
            return False
        try:
            self._client.store_shop_token(shop_domain, token)
        except UnauthorizedError:
            raise
        except ApiError as e:
            self.error = e.message or "Failed to store token"
            return False
        logger.info("Stored access token for shop %s", shop_domain)
        self.error = None
        return self.load()

    def remove_token(self, shop_domain: str, confirmed: bool = False) -> bool:
        """Nothing is sent unless the user confirmed the removal."""
        if not confirmed:
            return False
        try:
            self._client.remove_shop_token(shop_domain)
        except UnauthorizedError:
            raise
        except ApiError as e:
            self.error = e.message or "Failed to remove token"
            return False
        logger.info("Removed access token for shop %s", shop_domain)
        self.error = None
        return self.load()

    def customer_count(self, shop_domain: str) -> Optional[int]:
        try:
            body = self._client.get_shop_customers(shop_domain)
        except UnauthorizedError:
            raise
        except ApiError as e:
            self.error = e.message or "Failed to get customers"
            return None
        data = body.get("data") or {}
        try:
            return int(data.get("customer_count") or 0)
        except (TypeError, ValueError):
            return 0
