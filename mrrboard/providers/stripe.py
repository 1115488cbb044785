from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from mrrboard.errors import ApiError
from mrrboard.integrations.models import Platform
from mrrboard.providers.base import INTEGRATIONS_PATH, ConnectFlow, FlowState, PlatformConnector

logger = logging.getLogger(__name__)

SECRET_KEY_PREFIX = "sk_"


class StripeConnectFlow(ConnectFlow):
    """Single-field flow: a Stripe secret key posted to the create-integration endpoint."""

    platform = Platform.STRIPE

    def __init__(self, client, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self.secret_key = ""

    def submit(self, secret_key: Optional[str] = None) -> bool:
        if secret_key is not None:
            self.secret_key = secret_key
        key = (self.secret_key or "").strip()

        if not key:
            return self._reject("secret_key", "Please enter your Stripe Secret Key")
        if not key.startswith(SECRET_KEY_PREFIX):
            return self._reject(
                "secret_key",
                'Invalid Stripe Secret Key format. It should start with "sk_"',
            )

        if not self._begin():
            return False
        try:
            self._client.create_integration(
                Platform.STRIPE,
                "Stripe Integration",
                {"secret_key": key},
            )
        except ApiError as e:
            return self._fail(e, "Failed to connect to Stripe")

        logger.info("Stripe integration created; initial sync in progress")
        return self._succeed(
            "Stripe Connected Successfully!",
            navigate_to=INTEGRATIONS_PATH,
            delay_s=self.redirect_delay_s,
        )

    def reset(self) -> None:
        self._update(secret_key="")
        self._reset_outcome()

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["can_submit"] = bool(self.secret_key) and self.state != FlowState.SUBMITTING
        return data


class StripeConnector(PlatformConnector):
    key = Platform.STRIPE
    display_name = "Stripe"
    description = "Encrypted API key connection to Stripe"
    connection_type = "API Key (Encrypted)"
    order = 10

    def create_flow(self, client, *, existing=None, **kwargs: Any) -> StripeConnectFlow:
        return StripeConnectFlow(client, **kwargs)
