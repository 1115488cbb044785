"""
Integration records as returned by the revenue API.

An Integration is one configured connection to a billing platform. Its
status only ever changes because the backend says so; the helpers here parse
and interpret what the backend sent and never advance the lifecycle locally.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

logger = logging.getLogger(__name__)


class Platform(str, Enum):
    STRIPE = "stripe"
    SHOPIFY = "shopify"
    ECONOMIC = "economic"

    @classmethod
    def parse(cls, value: Any) -> Optional["Platform"]:
        if isinstance(value, Platform):
            return value
        if not value:
            return None
        key = str(value).strip().lower()
        if key == "e-conomic":
            key = "economic"
        try:
            return cls(key)
        except ValueError:
            return None


class IntegrationStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SYNCING = "syncing"
    ERROR = "error"
    DISCONNECTED = "disconnected"

    @classmethod
    def parse(cls, value: Any) -> "IntegrationStatus":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Unknown integration status %r, treating as pending", value)
            return cls.PENDING


S = IntegrationStatus

# Backend-driven transitions we expect to observe between two list loads.
TRANSITIONS: Mapping[IntegrationStatus, FrozenSet[IntegrationStatus]] = {
    S.PENDING: frozenset({S.ACTIVE, S.ERROR, S.SYNCING, S.DISCONNECTED}),
    S.ACTIVE: frozenset({S.ERROR, S.SYNCING, S.DISCONNECTED}),
    S.SYNCING: frozenset({S.ACTIVE, S.ERROR}),
    S.ERROR: frozenset({S.ACTIVE, S.SYNCING, S.DISCONNECTED, S.PENDING}),
    S.DISCONNECTED: frozenset({S.PENDING, S.ACTIVE}),
}

AUTH_FAILURE_MARKERS = ("MAC is invalid", "Invalid signature")


@dataclass(frozen=True)
class LastError:
    message: str
    occurred_at: Optional[str] = None

    @staticmethod
    def from_dict(data: Any) -> Optional["LastError"]:
        if isinstance(data, str) and data.strip():
            return LastError(message=data)
        if not isinstance(data, dict):
            return None
        message = data.get("message")
        if not message:
            return None
        return LastError(message=str(message), occurred_at=data.get("occurred_at"))


@dataclass(frozen=True)
class Shop:
    shop_domain: str
    installation_id: str = ""
    has_token: bool = False
    status: str = "unknown"

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Shop":
        return Shop(
            shop_domain=str(data.get("shop_domain") or ""),
            installation_id=str(data.get("installation_id") or ""),
            has_token=bool(data.get("has_token")),
            status=str(data.get("status") or "unknown"),
        )


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class Integration:
    id: int
    platform: Optional[Platform]
    platform_name: str
    status: IntegrationStatus
    customer_count: int = 0
    revenue: float = 0.0
    currency: Optional[str] = None
    last_sync_at: Optional[str] = None
    last_error: Optional[LastError] = None
    # non-secret fields the backend echoes back for form prefill
    credentials: Dict[str, str] = field(default_factory=dict)
    shops: List[Shop] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Integration":
        credentials = data.get("credentials")
        if not isinstance(credentials, dict):
            credentials = {}
        return Integration(
            id=_int(data.get("id")),
            platform=Platform.parse(data.get("platform")),
            platform_name=str(data.get("platform_name") or data.get("name") or ""),
            status=IntegrationStatus.parse(data.get("status")),
            customer_count=_int(data.get("customer_count", data.get("customers"))),
            revenue=_float(data.get("revenue", data.get("total_revenue"))),
            currency=data.get("currency"),
            last_sync_at=data.get("last_sync_at") or data.get("last_sync"),
            last_error=LastError.from_dict(data.get("last_sync_error")),
            credentials={k: str(v) for k, v in credentials.items() if v is not None},
            shops=[Shop.from_dict(s) for s in data.get("shops") or [] if isinstance(s, dict)],
        )


def is_valid_transition(old: IntegrationStatus, new: IntegrationStatus) -> bool:
    return old == new or new in TRANSITIONS.get(old, frozenset())


def reconcile_status(previous: Optional[Integration], current: Integration) -> IntegrationStatus:
    """
    Accept the backend's status for `current`, logging transitions the
    lifecycle does not expect. The backend always wins.
    """
    if previous is not None and not is_valid_transition(previous.status, current.status):
        logger.warning(
            "Integration %s moved %s -> %s, which is not an expected transition",
            current.id, previous.status.value, current.status.value,
        )
    return current.status


def auth_failure_hint(integration: Integration) -> Optional[str]:
    """Actionable text for signature/auth failures, which mean the stored credentials went stale."""
    if integration.last_error is None:
        return None
    message = integration.last_error.message
    if any(marker in message for marker in AUTH_FAILURE_MARKERS):
        name = integration.platform_name or "the platform"
        return (
            f"Authentication with {name} failed. "
            "Please reconnect the integration to refresh its credentials."
        )
    return None


def error_summary(integration: Integration) -> str:
    hint = auth_failure_hint(integration)
    if hint:
        return hint
    if integration.last_error is not None:
        return integration.last_error.message
    return "Connection failed. Please check your credentials and try again."
