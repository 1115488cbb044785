"""
HTTP client for the revenue API.

Every response is a JSON envelope {success, message?, data?}; anything
without a truthy `success` is a failure even on HTTP 200. A 401 from any
endpoint invalidates the shared AuthSession.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging

import requests

from mrrboard.config import DashboardConfig
from mrrboard.errors import ApiError, ConflictError, NetworkError, UnauthorizedError
from mrrboard.integrations.models import Integration, Platform, Shop
from mrrboard.session import AuthSession
from mrrboard.utils import redact_credentials

logger = logging.getLogger(__name__)


class DashboardApiClient:
    def __init__(
        self,
        config: DashboardConfig,
        session: AuthSession,
        *,
        http: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._auth = session
        self._timeout_s = config.api_timeout_s
        self._http = http if http is not None else requests.Session()
        self._http.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "X-Requested-With": "XMLHttpRequest",
            }
        )

    @property
    def session(self) -> AuthSession:
        return self._auth

    # ── transport ────────────────────────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        token = self._auth.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = self._config.api_endpoint(path)
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            resp = self._http.request(
                method,
                url,
                params=params or None,
                json=json,
                headers=self._headers(),
                timeout=self._timeout_s,
            )
        except requests.Timeout as e:
            logger.error("Request timeout: %s %s", method, path)
            raise NetworkError(str(e))
        except requests.RequestException as e:
            logger.error("Network error: %s %s: %s", method, path, redact_credentials(str(e)))
            raise NetworkError(str(e))

        try:
            body = resp.json() if resp.text else {}
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = None

        message = body.get("message") if body else None
        status = resp.status_code

        if self._config.debug_mode and status >= 400:
            logger.debug(
                "API Error: %s %s -> %s %s",
                method, path, status, redact_credentials(str(message or resp.text[:300])),
            )

        if status == 401:
            self._auth.invalidate()
            raise UnauthorizedError(message, status_code=status, payload=body)
        if status == 403:
            logger.warning("Access forbidden: %s", message)
        elif status == 404:
            logger.warning("Resource not found: %s", path)
        elif status == 409:
            raise ConflictError(message, status_code=status, payload=body)
        elif status >= 500:
            logger.error("Server error: %s %s", status, redact_credentials(str(message or "")))

        if status >= 400:
            raise ApiError(message, status_code=status, payload=body)

        if body is None:
            raise ApiError(None, status_code=status)
        if not body.get("success"):
            raise ApiError(message, status_code=status, payload=body)
        return body

    # ── auth ─────────────────────────────────────────────────────────────────

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/login", json={"email": email, "password": password})

    def logout(self) -> Dict[str, Any]:
        return self._request("POST", "/auth/logout")

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    # ── integrations ─────────────────────────────────────────────────────────

    def list_integrations(self, currency: Optional[str] = None) -> List[Integration]:
        body = self._request("GET", "/integrations", params={"currency": currency})
        rows = body.get("data") or []
        return [Integration.from_dict(row) for row in rows if isinstance(row, dict)]

    def create_integration(
        self,
        platform: Platform,
        platform_name: str,
        credentials: Dict[str, Any],
        settings: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "platform": Platform(platform).value,
            "platform_name": platform_name,
            "credentials": credentials,
        }
        if settings is not None:
            payload["settings"] = settings
        return self._request("POST", "/integrations", json=payload)

    def sync_integration(self, integration_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/integrations/{integration_id}/sync")

    def disconnect_integration(self, integration_id: int) -> Dict[str, Any]:
        """Soft removal; the backend keeps historical customer/invoice data."""
        return self._request("POST", f"/integrations/{integration_id}/disconnect")

    def delete_integration(self, integration_id: int) -> Dict[str, Any]:
        """Hard delete, including synced data."""
        return self._request("DELETE", f"/integrations/{integration_id}")

    def get_sync_settings(self) -> Dict[str, Any]:
        return self._request("GET", "/user/sync-settings")

    def update_sync_settings(self, auto_sync: bool, sync_frequency: int) -> Dict[str, Any]:
        return self._request(
            "PUT",
            "/user/sync-settings",
            json={"auto_sync": bool(auto_sync), "sync_frequency": int(sync_frequency)},
        )

    # ── shopify ──────────────────────────────────────────────────────────────

    def connect_shopify_partner(self, partner_access_token: str, organization_id: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/shopify/connect-partner",
            json={
                "partner_access_token": partner_access_token,
                "organization_id": organization_id,
            },
        )

    def list_shops(self) -> List[Shop]:
        body = self._request("GET", "/shopify/shops")
        return [Shop.from_dict(row) for row in body.get("data") or [] if isinstance(row, dict)]

    def store_shop_token(self, shop_domain: str, access_token: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/shopify/shops/{quote(shop_domain, safe='')}/token",
            json={"access_token": access_token},
        )

    def remove_shop_token(self, shop_domain: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/shopify/shops/{quote(shop_domain, safe='')}/token")

    def get_shop_customers(self, shop_domain: str) -> Dict[str, Any]:
        return self._request("GET", f"/shopify/shops/{quote(shop_domain, safe='')}/customers")

    # ── e-conomic ────────────────────────────────────────────────────────────

    def economic_oauth_url(self) -> Dict[str, Any]:
        return self._request("GET", "/economic/oauth-url")

    def economic_oauth_complete(self, grant_token: str, platform_name: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/economic/oauth-complete",
            json={"grant_token": grant_token, "platform_name": platform_name},
        )

    # ── currency ─────────────────────────────────────────────────────────────

    def get_currency_rates(self, base: Optional[str] = None) -> Dict[str, Any]:
        return self._request("GET", "/currency/rates", params={"from": base})
