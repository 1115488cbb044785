"""
Integrations page endpoints: platform cards, connection flows, sync and removal.

Each request builds a view or flow around a DashboardApiClient bound to the
caller's session. Flow outcomes are returned as their snapshot plus any
navigation the flow asked for, which the browser performs.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request, session

from mrrboard.api.client import DashboardApiClient
from mrrboard.errors import ApiError, UnauthorizedError
from mrrboard.integrations.models import Platform
from mrrboard.providers.base import RecordingNavigator
from mrrboard.providers.economic import EconomicCredentialsFlow, OAuthStep
from mrrboard.providers.stripe import StripeConnectFlow
from mrrboard.registry import registry
from mrrboard.session import LOGIN_PATH, AuthSession, FlaskSessionTokenStore, MemoryTokenStore
from mrrboard.views.integration_list import InFlight, IntegrationListView, RemovalChoice, SyncOutcome
from mrrboard.views.shops_manager import ShopsManager

integrations_bp = Blueprint(
    "integrations_bp",
    __name__,
    url_prefix="/integrations",
)

logger = logging.getLogger(__name__)

ECONOMIC_STEP_KEY = "economic_oauth_step"
ECONOMIC_URL_KEY = "economic_oauth_url"


def build_session() -> AuthSession:
    """Use an explicit bearer header when the caller sent one, else the cookie session."""
    header = (request.headers.get("Authorization") or "").strip()
    if header.lower().startswith("bearer "):
        return AuthSession(MemoryTokenStore(token=header[7:].strip()))
    return AuthSession(FlaskSessionTokenStore())


def build_client() -> DashboardApiClient:
    return DashboardApiClient(current_app.config["MRRBOARD"], build_session())


def _in_flight() -> InFlight:
    return current_app.extensions.setdefault("mrrboard_in_flight", InFlight())


def _build_view(client: DashboardApiClient, navigator: Optional[RecordingNavigator] = None) -> IntegrationListView:
    config = current_app.config["MRRBOARD"]
    return IntegrationListView(
        client,
        registry=registry,
        currency=(request.args.get("currency") or "").strip().upper() or None,
        navigator=navigator,
        redirect_delay_s=config.redirect_delay_s,
        in_flight=_in_flight(),
    )


def _flow_response(flow, navigator: RecordingNavigator, ok: bool):
    body: Dict[str, Any] = {"success": ok, "flow": flow.snapshot(), "navigate": navigator.pending}
    if ok or not flow.field_errors:
        return jsonify(body), 200 if ok else 422
    # local validation failure: nothing was sent
    return jsonify(body), 400


def _body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


@integrations_bp.errorhandler(UnauthorizedError)
def handle_unauthorized(error: UnauthorizedError):
    logger.info("Revenue API rejected the session token on %s", request.path)
    return jsonify({"success": False, "error": "Session expired. Please log in again.", "redirect": LOGIN_PATH}), 401


# ── list ────────────────────────────────────────────────────────────────────


@integrations_bp.route("", methods=["GET"])
def list_integrations():
    """
    Integration cards for every available platform.

    Query:
      - currency (str, optional): DKK, EUR or USD for revenue figures.
    """
    view = _build_view(build_client())
    view.load()
    if not view.loaded:
        return jsonify({"success": False, "error": view.error}), 502
    return jsonify({
        "success": True,
        "overview": view.overview(),
        "cards": [card.to_dict() for card in view.cards()],
        "refresh_after_ms": int(current_app.config["MRRBOARD"].sync_poll_s * 1000),
    })


# ── connection flows ────────────────────────────────────────────────────────


@integrations_bp.route("/stripe/connect", methods=["POST"])
def connect_stripe():
    """Request JSON: secret_key (str, required, starts with sk_)."""
    navigator = RecordingNavigator()
    config = current_app.config["MRRBOARD"]
    flow = StripeConnectFlow(build_client(), navigator=navigator, redirect_delay_s=config.redirect_delay_s)
    ok = flow.submit(str(_body().get("secret_key") or ""))
    return _flow_response(flow, navigator, ok)


@integrations_bp.route("/shopify/connect", methods=["POST"])
def connect_shopify():
    """Request JSON: partner_access_token (str), organization_id (str); both required."""
    data = _body()
    navigator = RecordingNavigator()
    view = _build_view(build_client(), navigator)
    view.load()
    flow = view.open_flow(Platform.SHOPIFY)
    ok = flow.submit(
        str(data.get("partner_access_token") or ""),
        str(data.get("organization_id") or ""),
    )
    return _flow_response(flow, navigator, ok)


@integrations_bp.route("/economic/credentials", methods=["POST"])
def connect_economic_credentials():
    """Request JSON: app_secret_token (str), agreement_grant_token (str)."""
    data = _body()
    navigator = RecordingNavigator()
    config = current_app.config["MRRBOARD"]
    flow = EconomicCredentialsFlow(build_client(), navigator=navigator, redirect_delay_s=config.redirect_delay_s)
    ok = flow.submit(
        str(data.get("app_secret_token") or ""),
        str(data.get("agreement_grant_token") or ""),
    )
    return _flow_response(flow, navigator, ok)


def _economic_flow(navigator: RecordingNavigator):
    view = _build_view(build_client(), navigator)
    # the browser opens the authorization URL from the response
    flow = view.open_flow(Platform.ECONOMIC, opener=lambda url: None)
    flow.restore(session.get(ECONOMIC_STEP_KEY), session.get(ECONOMIC_URL_KEY))
    return flow


def _remember_economic(flow) -> None:
    if flow.oauth_url:
        session[ECONOMIC_STEP_KEY] = flow.step.value
        session[ECONOMIC_URL_KEY] = flow.oauth_url
    else:
        session.pop(ECONOMIC_STEP_KEY, None)
        session.pop(ECONOMIC_URL_KEY, None)


@integrations_bp.route("/economic/oauth-url", methods=["POST"])
def economic_oauth_url():
    navigator = RecordingNavigator()
    flow = _economic_flow(navigator)
    ok = flow.request_authorization()
    _remember_economic(flow)
    return _flow_response(flow, navigator, ok)


@integrations_bp.route("/economic/complete", methods=["POST"])
def economic_complete():
    """Request JSON: grant_token (str, exactly 26 characters)."""
    navigator = RecordingNavigator()
    flow = _economic_flow(navigator)
    if flow.step != OAuthStep.TOKEN:
        return jsonify({
            "success": False,
            "error": "Request the E-conomic authorization URL before entering a grant token.",
            "flow": flow.snapshot(),
        }), 409
    ok = flow.submit_token(str(_body().get("grant_token") or ""))
    _remember_economic(flow)
    return _flow_response(flow, navigator, ok)


@integrations_bp.route("/economic/callback", methods=["GET"])
def economic_callback():
    """E-conomic redirects here with ?token=<grant token>."""
    navigator = RecordingNavigator()
    flow = _economic_flow(navigator)
    ok = flow.handle_callback(request.args)
    if ok:
        session.pop(ECONOMIC_STEP_KEY, None)
        session.pop(ECONOMIC_URL_KEY, None)
    else:
        logger.warning("E-conomic callback failed: %s", flow.error)
    return _flow_response(flow, navigator, ok)


# ── sync / removal ──────────────────────────────────────────────────────────


@integrations_bp.route("/<int:integration_id>/sync", methods=["POST"])
def sync_integration(integration_id: int):
    view = _build_view(build_client())
    outcome = view.start_sync(integration_id)
    if outcome == SyncOutcome.IN_FLIGHT:
        return jsonify({"success": False, "error": "A sync is already running for this integration."}), 409
    if outcome == SyncOutcome.FAILED:
        return jsonify({"success": False, "error": view.sync_errors.get(integration_id)}), 502
    return jsonify({"success": True})


@integrations_bp.route("/<int:integration_id>/removal", methods=["GET"])
def removal_dialog(integration_id: int):
    """The disconnect-or-remove question shown before anything is removed."""
    view = _build_view(build_client())
    view.load()
    dialog = view.removal_dialog(integration_id)
    return jsonify({
        "success": True,
        "integration_id": dialog.integration_id,
        "platform_name": dialog.platform_name,
        "text": dialog.text,
        "choices": [c.value for c in dialog.choices],
    })


@integrations_bp.route("/<int:integration_id>/removal", methods=["POST"])
def confirm_removal(integration_id: int):
    """
    Request JSON:
      - choice (str, required): "disconnect" keeps synced data, "remove" deletes it,
        "cancel" does nothing.
    """
    raw = str(_body().get("choice") or "").strip().lower()
    try:
        choice = RemovalChoice(raw)
    except ValueError:
        return jsonify({"error": "choice must be one of: disconnect, remove, cancel"}), 400

    view = _build_view(build_client())
    ok = view.confirm_removal(integration_id, choice)
    if choice == RemovalChoice.CANCEL:
        return jsonify({"success": True, "choice": choice.value})
    if not ok:
        return jsonify({"success": False, "error": view.error}), 502
    return jsonify({"success": True, "choice": choice.value})


# ── shopify shops ───────────────────────────────────────────────────────────


@integrations_bp.route("/shopify/shops", methods=["GET"])
def list_shops():
    manager = ShopsManager(build_client())
    if not manager.load():
        return jsonify({"success": False, "error": manager.error}), 502
    return jsonify({
        "success": True,
        "shops": [
            {
                "shop_domain": s.shop_domain,
                "installation_id": s.installation_id,
                "has_token": s.has_token,
                "status": s.status,
            }
            for s in manager.shops
        ],
    })


@integrations_bp.route("/shopify/shops/<path:shop_domain>/token", methods=["POST"])
def store_shop_token(shop_domain: str):
    """Request JSON: access_token (str, required)."""
    token = str(_body().get("access_token") or "").strip()
    if not token:
        return jsonify({"error": "access_token is required"}), 400
    manager = ShopsManager(build_client())
    if not manager.store_token(shop_domain, token):
        return jsonify({"success": False, "error": manager.error}), 502
    return jsonify({"success": True})


@integrations_bp.route("/shopify/shops/<path:shop_domain>/token", methods=["DELETE"])
def remove_shop_token(shop_domain: str):
    """Query: confirm=true is required."""
    confirmed = (request.args.get("confirm") or "").strip().lower() in ("true", "1", "yes")
    if not confirmed:
        return jsonify({"error": f"Confirm removal of the access token for {shop_domain} with ?confirm=true"}), 400
    manager = ShopsManager(build_client())
    if not manager.remove_token(shop_domain, confirmed=True):
        return jsonify({"success": False, "error": manager.error}), 502
    return jsonify({"success": True})


@integrations_bp.route("/shopify/shops/<path:shop_domain>/customers", methods=["GET"])
def shop_customers(shop_domain: str):
    manager = ShopsManager(build_client())
    count = manager.customer_count(shop_domain)
    if count is None:
        return jsonify({"success": False, "error": manager.error}), 502
    return jsonify({"success": True, "shop_domain": shop_domain, "customer_count": count})


# ── sync settings ───────────────────────────────────────────────────────────


@integrations_bp.route("/sync-settings", methods=["GET"])
def get_sync_settings():
    view = _build_view(build_client())
    try:
        settings = view.sync_settings()
    except UnauthorizedError:
        raise
    except ApiError as e:
        return jsonify({"success": False, "error": e.message or "Failed to load sync settings"}), 502
    return jsonify({"success": True, "settings": settings})


@integrations_bp.route("/sync-settings", methods=["PUT"])
def update_sync_settings():
    """Request JSON: auto_sync (bool), sync_frequency (int minutes, >= 1)."""
    data = _body()
    try:
        frequency = int(data.get("sync_frequency", 15))
    except (TypeError, ValueError):
        return jsonify({"error": "sync_frequency must be an integer"}), 400
    view = _build_view(build_client())
    if not view.save_sync_settings(bool(data.get("auto_sync", True)), frequency):
        return jsonify({"success": False, "error": view.error}), 400
    return jsonify({"success": True})


def get_manifest():
    """Routes exposed by this blueprint, for the combined manifest."""
    return {
        "name": "Integrations",
        "description": "Connect billing platforms and manage their sync state.",
        "platforms": [c.describe() for c in registry.all()],
    }
