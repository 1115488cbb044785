"""
Login / logout for the dashboard session.

Tokens are issued by the revenue API; this blueprint only forwards the
credentials and keeps the returned token in the signed session cookie.
"""
from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from mrrboard.api.client import DashboardApiClient
from mrrboard.errors import ApiError, UnauthorizedError
from mrrboard.session import LOGIN_PATH, AuthSession, FlaskSessionTokenStore

auth_bp = Blueprint("auth_bp", __name__)

logger = logging.getLogger(__name__)


def _client() -> DashboardApiClient:
    return DashboardApiClient(current_app.config["MRRBOARD"], AuthSession(FlaskSessionTokenStore()))


@auth_bp.errorhandler(UnauthorizedError)
def handle_unauthorized(error: UnauthorizedError):
    return jsonify({"success": False, "error": "Session expired. Please log in again.", "redirect": LOGIN_PATH}), 401


@auth_bp.route(LOGIN_PATH, methods=["POST"])
def login():
    """
    Request JSON (application/json):
      - email (str, required)
      - password (str, required)
    """
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip()
    password = str(data.get("password") or "")
    if not email or not password:
        return jsonify({"error": "email and password are required"}), 400

    client = _client()
    try:
        body = client.login(email, password)
    except UnauthorizedError as e:
        return jsonify({"success": False, "error": e.message or "Invalid email or password"}), 401
    except ApiError as e:
        logger.warning("Login failed: %s", e)
        return jsonify({"success": False, "error": e.message or "Login failed"}), 502

    payload = body.get("data") or {}
    token = payload.get("token") or body.get("token")
    if not token:
        return jsonify({"success": False, "error": "Login response did not include a token"}), 502

    user = payload.get("user")
    client.session.login(token, user)
    logger.info("User logged in")
    return jsonify({"success": True, "user": user, "navigate": {"to": "/integrations", "after_ms": 0}})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    client = _client()
    if client.session.is_authenticated:
        try:
            client.logout()
        except UnauthorizedError:
            pass  # session already cleared by the client
        except ApiError as e:
            logger.warning("Logout request failed, clearing local session anyway: %s", e)
    client.session.logout()
    return jsonify({"success": True, "navigate": {"to": LOGIN_PATH, "after_ms": 0}})


@auth_bp.route("/me", methods=["GET"])
def me():
    client = _client()
    if not client.session.is_authenticated:
        return jsonify({"success": False, "error": "Not logged in", "redirect": LOGIN_PATH}), 401
    try:
        body = client.me()
    except UnauthorizedError:
        raise
    except ApiError as e:
        logger.warning("Loading the current user failed: %s", e)
        return jsonify({"success": False, "error": e.message or "Failed to load user"}), 502
    return jsonify({"success": True, "user": body.get("data")})
