"""
Error taxonomy for the dashboard client.

Local validation failures never reach the network. Everything coming back
from the revenue API is an ApiError (or one of its subclasses) carrying the
backend message when one was provided.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class DashboardError(RuntimeError):
    """Base class for every error raised by mrrboard."""
    pass


class ConfigError(ValueError):
    """Raised when required configuration is missing or malformed."""
    pass


class ApiError(DashboardError):
    """The revenue API rejected a request or returned an unusable response."""

    def __init__(
        self,
        message: Optional[str],
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or f"API request failed ({status_code})")
        # Only what the backend actually said; flows pick their own fallback text.
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class ConflictError(ApiError):
    """409: the integration already exists."""
    pass


class UnauthorizedError(ApiError):
    """401: the bearer token was rejected and the session has been invalidated."""
    pass


class NetworkError(ApiError):
    """Timeout or connection failure; no backend message is available."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(None, status_code=None)
        self.detail = message
