"""
E-conomic connection.

The primary flow is a two-step grant-token exchange that needs the user to
approve the app on E-conomic's own site:

  1. instructions: fetch the authorization URL from the backend and open it
  2. token: the user pastes the 26-character grant token E-conomic
     handed out, which is posted to the OAuth-completion endpoint

E-conomic can also redirect straight back to the dashboard with the token in
the query string; handle_callback() covers that landing page. The older
direct-credential form (app secret + agreement grant token) is kept as
EconomicCredentialsFlow.
"""
from __future__ import annotations

import logging
import webbrowser
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from mrrboard.errors import ApiError, UnauthorizedError
from mrrboard.integrations.models import Platform
from mrrboard.providers.base import INTEGRATIONS_PATH, ConnectFlow, FlowState, PlatformConnector

logger = logging.getLogger(__name__)

GRANT_TOKEN_LENGTH = 26
CREDENTIAL_MIN_LENGTH = 10
PLATFORM_NAME = "E-conomic"


class OAuthStep(str, Enum):
    INSTRUCTIONS = "instructions"
    TOKEN = "token"


class EconomicOAuthFlow(ConnectFlow):
    platform = Platform.ECONOMIC

    def __init__(
        self,
        client,
        *,
        opener: Optional[Callable[[str], Any]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, **kwargs)
        self._opener = opener if opener is not None else webbrowser.open_new_tab
        self.step = OAuthStep.INSTRUCTIONS
        self.oauth_url: Optional[str] = None
        self.grant_token = ""
        self.is_open = True

    @property
    def can_enter_token(self) -> bool:
        """The "I have the token" action stays disabled until the URL fetch succeeded."""
        return bool(self.oauth_url)

    def restore(self, step: Optional[str], oauth_url: Optional[str]) -> None:
        """Rehydrate step state kept between web requests."""
        if oauth_url:
            self._update(oauth_url=oauth_url)
        if step == OAuthStep.TOKEN.value and self.can_enter_token:
            self._update(step=OAuthStep.TOKEN)

    def request_authorization(self) -> bool:
        if not self._begin():
            return False
        try:
            response = self._client.economic_oauth_url()
        except UnauthorizedError:
            self._update(state=FlowState.IDLE)
            raise
        except ApiError as e:
            detail = e.message or getattr(e, "detail", None) or str(e)
            logger.warning("Failed to get E-conomic OAuth URL: %s", e)
            self._update(state=FlowState.ERROR, error=f"Failed to get OAuth URL: {detail}")
            return False

        url = response.get("oauth_url")
        if not url:
            self._update(state=FlowState.ERROR, error="Failed to get OAuth URL. Please try again.")
            return False

        if not self._update(oauth_url=url, step=OAuthStep.TOKEN, state=FlowState.IDLE, error=None):
            return False
        try:
            self._opener(url)
        except Exception as e:
            # the URL is still shown, so the user can open it by hand
            logger.warning("Could not open E-conomic authorization page: %s", e)
        return True

    def enter_token_step(self) -> bool:
        if not self.can_enter_token:
            return False
        return self._update(step=OAuthStep.TOKEN)

    def submit_token(self, grant_token: Optional[str] = None) -> bool:
        if self.step != OAuthStep.TOKEN or not self.can_enter_token:
            return self._reject(
                "grant_token",
                "Open the E-conomic authorization page before entering a grant token.",
            )
        if grant_token is not None:
            self.grant_token = grant_token
        token = (self.grant_token or "").strip()

        if len(token) != GRANT_TOKEN_LENGTH:
            return self._reject(
                "grant_token",
                f"Grant token must be exactly {GRANT_TOKEN_LENGTH} characters (got {len(token)})",
            )

        if not self._begin():
            return False
        try:
            response = self._client.economic_oauth_complete(token, PLATFORM_NAME)
        except ApiError as e:
            self._update(step=OAuthStep.TOKEN)
            return self._fail(e, "Failed to connect E-conomic integration.")

        if not self._succeed(response.get("message") or "E-conomic integration connected successfully!"):
            return False
        self.close()
        return True

    def handle_callback(self, params: Mapping[str, str]) -> bool:
        """Complete the exchange from E-conomic's redirect (token in the query string)."""
        token = (params.get("token") or params.get("grant_token") or "").strip()
        if not token:
            self._update(state=FlowState.ERROR, error="No grant token received from E-conomic. Please try again.")
            return False
        if len(token) != GRANT_TOKEN_LENGTH:
            self._update(
                state=FlowState.ERROR,
                error="Invalid grant token format received from E-conomic. Please try again.",
            )
            return False

        if not self._begin():
            return False
        try:
            self._client.economic_oauth_complete(token, PLATFORM_NAME)
        except ApiError as e:
            return self._fail(e, "Failed to connect E-conomic integration.")

        return self._succeed(
            "E-conomic integration connected successfully! Redirecting...",
            navigate_to=INTEGRATIONS_PATH,
            delay_s=self.redirect_delay_s,
        )

    def retry(self) -> None:
        self._update(step=OAuthStep.INSTRUCTIONS, state=FlowState.IDLE, error=None, field_errors={})

    def close(self) -> None:
        self._update(is_open=False, step=OAuthStep.INSTRUCTIONS, oauth_url=None, grant_token="")

    def reset(self) -> None:
        self._update(is_open=True, step=OAuthStep.INSTRUCTIONS, oauth_url=None, grant_token="")
        self._reset_outcome()

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data.update(
            step=self.step.value,
            oauth_url=self.oauth_url,
            can_enter_token=self.can_enter_token,
            is_open=self.is_open,
        )
        return data


class EconomicCredentialsFlow(ConnectFlow):
    """Direct API-credential form: app secret token + agreement grant token."""

    platform = Platform.ECONOMIC

    def __init__(self, client, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self.app_secret_token = ""
        self.agreement_grant_token = ""

    def submit(
        self,
        app_secret_token: Optional[str] = None,
        agreement_grant_token: Optional[str] = None,
    ) -> bool:
        if app_secret_token is not None:
            self.app_secret_token = app_secret_token
        if agreement_grant_token is not None:
            self.agreement_grant_token = agreement_grant_token

        secret = (self.app_secret_token or "").strip()
        grant = (self.agreement_grant_token or "").strip()

        if len(secret) < CREDENTIAL_MIN_LENGTH:
            return self._reject(
                "app_secret_token",
                f"App Secret Token must be at least {CREDENTIAL_MIN_LENGTH} characters",
            )
        if len(grant) < CREDENTIAL_MIN_LENGTH:
            return self._reject(
                "agreement_grant_token",
                f"Agreement Grant Token must be at least {CREDENTIAL_MIN_LENGTH} characters",
            )

        if not self._begin():
            return False
        try:
            self._client.create_integration(
                Platform.ECONOMIC,
                "E-conomic Integration",
                {"app_secret_token": secret, "agreement_grant_token": grant},
            )
        except ApiError as e:
            return self._fail(e, "Failed to connect to E-conomic")

        return self._succeed(
            "E-conomic Connected Successfully!",
            navigate_to=INTEGRATIONS_PATH,
            delay_s=self.redirect_delay_s,
        )

    def reset(self) -> None:
        self._update(app_secret_token="", agreement_grant_token="")
        self._reset_outcome()


class EconomicConnector(PlatformConnector):
    key = Platform.ECONOMIC
    display_name = "E-conomic"
    description = "OAuth grant-token connection to your E-conomic agreement"
    connection_type = "OAuth grant token"
    order = 30

    def create_flow(self, client, *, existing=None, **kwargs: Any) -> EconomicOAuthFlow:
        return EconomicOAuthFlow(client, **kwargs)
