"""
Shopify Partner connection.

The organization-level credential goes to a dedicated endpoint because the
backend enumerates every shop under the Partner organization once the
credential is accepted. The same endpoint creates or updates.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from mrrboard.errors import ApiError, ConflictError
from mrrboard.integrations.models import Integration, IntegrationStatus, Platform, error_summary
from mrrboard.providers.base import INTEGRATIONS_PATH, ConnectFlow, FlowState, PlatformConnector

logger = logging.getLogger(__name__)


class ShopifyPartnerConnectFlow(ConnectFlow):
    platform = Platform.SHOPIFY

    def __init__(self, client, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self.partner_access_token = ""
        self.organization_id = ""
        self.existing: Optional[Integration] = None

    @property
    def title(self) -> str:
        if self.existing is not None and self.existing.status == IntegrationStatus.ERROR:
            return "Fix Shopify Partners Connection"
        if self.existing is not None:
            return "Update Shopify Partners Connection"
        return "Connect Shopify Partners"

    def prefill(self, integration: Optional[Integration]) -> None:
        """Load an existing integration's non-secret fields and surface its error, if any."""
        if integration is None:
            return
        self.existing = integration
        creds = integration.credentials
        self._update(
            partner_access_token=creds.get("partner_access_token", "") or "",
            organization_id=creds.get("organization_id", "") or "",
        )
        if integration.status == IntegrationStatus.ERROR:
            self._update(state=FlowState.ERROR, error=error_summary(integration))

    def submit(
        self,
        partner_access_token: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> bool:
        if partner_access_token is not None:
            self.partner_access_token = partner_access_token
        if organization_id is not None:
            self.organization_id = organization_id

        token = (self.partner_access_token or "").strip()
        org_id = (self.organization_id or "").strip()

        if not token:
            return self._reject("partner_access_token", "Partner access token is required")
        if not org_id:
            return self._reject("organization_id", "Organization ID is required")

        if not self._begin():
            return False

        updating = self.existing is not None
        try:
            response = self._client.connect_shopify_partner(token, org_id)
        except ConflictError as e:
            # already connected: back to the list instead of a retry prompt
            logger.info("Shopify Partner integration already exists")
            self._fail(e, "Shopify Partner integration already exists")
            self._navigate(INTEGRATIONS_PATH)
            return False
        except ApiError as e:
            fallback = (
                "Failed to update Shopify Partners" if updating
                else "Failed to connect to Shopify Partners"
            )
            return self._fail(e, fallback)

        logger.info(
            "Shopify Partner integration %s successfully",
            "updated" if updating else "created",
        )

        data = response.get("data") or {}
        integration_id = data.get("integration_id") if isinstance(data, dict) else None
        if integration_id and not self.disposed:
            try:
                self._client.sync_integration(integration_id)
                logger.info("Sync triggered for Shopify integration %s", integration_id)
            except Exception as e:
                logger.warning("Failed to trigger sync for Shopify integration %s: %s", integration_id, e)

        return self._succeed(
            "Shopify Partners Connected Successfully!",
            navigate_to=INTEGRATIONS_PATH,
        )

    def reset(self) -> None:
        self._update(partner_access_token="", organization_id="")
        self._reset_outcome()

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["title"] = self.title
        data["organization_id"] = self.organization_id
        return data


class ShopifyConnector(PlatformConnector):
    key = Platform.SHOPIFY
    display_name = "Shopify"
    description = "Shopify Partner API connection covering every store in the organization"
    connection_type = "Partner API token"
    order = 20

    def create_flow(self, client, *, existing: Optional[Integration] = None, **kwargs: Any) -> ShopifyPartnerConnectFlow:
        flow = ShopifyPartnerConnectFlow(client, **kwargs)
        flow.prefill(existing)
        return flow
