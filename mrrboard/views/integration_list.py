"""
Integration list / status view.

Reconciles the configured integrations returned by the API against the
platforms the dashboard knows how to connect, and decides per platform which
entry point or controls to show:

  no integration, or disconnected  ->  Connect / Reconnect
  error                            ->  error summary + Fix Connection
  anything else                    ->  live counters + Sync / Disconnect / Remove

Sync clicks are de-duplicated per integration id with an in-flight set. The
set is advisory only: a new view starts empty, and the backend is the one
that makes sync idempotent.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from mrrboard.currency import RateTable, format_currency
from mrrboard.errors import ApiError, UnauthorizedError
from mrrboard.integrations.models import (
    Integration,
    IntegrationStatus,
    error_summary,
    reconcile_status,
)
from mrrboard.providers.base import ConnectFlow, Navigator, PlatformConnector
from mrrboard.registry import PlatformRegistry, registry as default_registry

logger = logging.getLogger(__name__)

LIVE_ACTIONS = ("Sync", "Disconnect", "Remove")
FIX_ACTIONS = ("Fix Connection",)
RECONNECT_ACTIONS = ("Reconnect",)
CONNECT_ACTIONS = ("Connect",)
DEFAULT_SYNC_FREQUENCY = 15


class CardMode(str, Enum):
    CONNECT = "connect"
    RECONNECT = "reconnect"
    FIX = "fix"
    LIVE = "live"


class SyncOutcome(str, Enum):
    STARTED = "started"
    IN_FLIGHT = "in_flight"
    FAILED = "failed"


class RemovalChoice(str, Enum):
    DISCONNECT = "disconnect"   # keep synced data
    REMOVE = "remove"           # delete integration and its data
    CANCEL = "cancel"


@dataclass
class PlatformCard:
    connector: PlatformConnector
    integration: Optional[Integration]
    mode: CardMode
    actions: Tuple[str, ...]
    error_summary: Optional[str] = None
    revenue_display: Optional[str] = None
    sync_disabled: bool = False
    sync_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        integration = self.integration
        return {
            "platform": self.connector.describe(),
            "integration_id": integration.id if integration else None,
            "status": integration.status.value if integration else None,
            "mode": self.mode.value,
            "actions": list(self.actions),
            "error_summary": self.error_summary,
            "customer_count": integration.customer_count if integration and self.mode == CardMode.LIVE else None,
            "revenue": self.revenue_display,
            "last_sync_at": integration.last_sync_at if integration else None,
            "sync_disabled": self.sync_disabled,
            "sync_error": self.sync_error,
        }


@dataclass(frozen=True)
class RemovalDialog:
    integration_id: int
    platform_name: str
    choices: Tuple[RemovalChoice, ...] = (RemovalChoice.DISCONNECT, RemovalChoice.REMOVE, RemovalChoice.CANCEL)

    @property
    def text(self) -> str:
        return (
            f"Disconnect {self.platform_name} and keep its historical customer and invoice data, "
            f"or remove it permanently together with all synced data?"
        )


class InFlight:
    """Integration ids with a sync request outstanding; cleared when the request settles."""

    def __init__(self) -> None:
        self._ids: Set[int] = set()
        self._lock = threading.Lock()

    def claim(self, integration_id: int) -> bool:
        with self._lock:
            if integration_id in self._ids:
                return False
            self._ids.add(integration_id)
            return True

    def release(self, integration_id: int) -> None:
        with self._lock:
            self._ids.discard(integration_id)

    def release_all(self, integration_ids) -> None:
        with self._lock:
            self._ids.difference_update(integration_ids)

    def __contains__(self, integration_id: object) -> bool:
        with self._lock:
            return integration_id in self._ids


def _frequency(value: Any) -> int:
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        if value is not None:
            logger.warning("Ignoring unreadable sync frequency %r", value)
        return DEFAULT_SYNC_FREQUENCY
    return minutes if minutes >= 1 else DEFAULT_SYNC_FREQUENCY


def match_integration(connector: PlatformConnector, integrations: List[Integration]) -> Optional[Integration]:
    """Match by platform key; fall back to a name match only for records without a key."""
    for integration in integrations:
        if integration.platform == connector.key:
            return integration

    # TODO: drop once the backend backfills platform keys on legacy records
    for integration in integrations:
        if integration.platform is None and connector.matches_name(integration.platform_name):
            logger.warning(
                "Integration %s has no platform key; matched to %s by name",
                integration.id, connector.key.value,
            )
            return integration
    return None


class IntegrationListView:
    def __init__(
        self,
        client,
        *,
        registry: Optional[PlatformRegistry] = None,
        currency: Optional[str] = None,
        navigator: Optional[Navigator] = None,
        redirect_delay_s: float = 2.0,
        in_flight: Optional[InFlight] = None,
        rates: Optional[RateTable] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self._client = client
        self._registry = registry or default_registry
        self._navigator = navigator
        self._redirect_delay_s = redirect_delay_s
        self._in_flight = in_flight if in_flight is not None else InFlight()
        self._rates = rates
        self._timer_factory = timer_factory
        self.currency = currency

        self._lock = threading.Lock()
        self._refresh_timer: Optional[threading.Timer] = None
        self._refresh_interval_s: Optional[float] = None
        self._disposed = False

        self.integrations: List[Integration] = []
        self.error: Optional[str] = None
        self.sync_errors: Dict[int, str] = {}
        self.loaded = False

    def _set(self, **changes: Any) -> bool:
        with self._lock:
            if self._disposed:
                return False
            for name, value in changes.items():
                setattr(self, name, value)
            return True

    # ── loading ──────────────────────────────────────────────────────────────

    def load(self, currency: Optional[str] = None) -> bool:
        if currency is not None:
            self.currency = currency
        try:
            fresh = self._client.list_integrations(currency=self.currency)
        except UnauthorizedError:
            raise
        except ApiError as e:
            logger.warning("Failed to load integrations: %s", e)
            self._set(error=e.message or "Failed to load integrations")
            return False

        previous = {i.id: i for i in self.integrations}
        for integration in fresh:
            reconcile_status(previous.get(integration.id), integration)

        return self._set(integrations=fresh, error=None, loaded=True)

    def reload(self) -> bool:
        return self.load()

    # ── rendering ────────────────────────────────────────────────────────────

    def platforms(self) -> List[PlatformConnector]:
        return self._registry.all()

    def _rate_table(self) -> RateTable:
        # live rates are fetched only once a record needs converting
        if self._rates is None:
            self._rates = RateTable.from_api(self._client)
        return self._rates

    def _amount_in(self, integration: Integration, target: str) -> Any:
        """Revenue in `target`; the API normally returns it converted already."""
        source = (integration.currency or "").upper()
        if source and source != target:
            return self._rate_table().convert(integration.revenue, source, target)
        return integration.revenue

    def card_for(self, connector: PlatformConnector) -> PlatformCard:
        integration = match_integration(connector, self.integrations)

        if integration is None:
            return PlatformCard(connector, None, CardMode.CONNECT, CONNECT_ACTIONS)
        if integration.status == IntegrationStatus.DISCONNECTED:
            return PlatformCard(connector, integration, CardMode.RECONNECT, RECONNECT_ACTIONS)
        if integration.status == IntegrationStatus.ERROR:
            return PlatformCard(
                connector,
                integration,
                CardMode.FIX,
                FIX_ACTIONS,
                error_summary=error_summary(integration),
            )

        currency = self.currency or (integration.currency or "").upper() or "DKK"
        return PlatformCard(
            connector,
            integration,
            CardMode.LIVE,
            LIVE_ACTIONS,
            revenue_display=format_currency(self._amount_in(integration, currency), currency),
            sync_disabled=(
                integration.id in self._in_flight
                or integration.status == IntegrationStatus.SYNCING
            ),
            sync_error=self.sync_errors.get(integration.id),
        )

    def cards(self) -> List[PlatformCard]:
        return [self.card_for(connector) for connector in self.platforms()]

    def overview(self) -> Dict[str, Any]:
        cards = self.cards()
        live = [c.integration for c in cards if c.mode == CardMode.LIVE and c.integration]
        currency = self.currency or "DKK"
        total = sum(self._amount_in(i, currency) for i in live)
        return {
            "connected": f"{len(live)}/{len(cards)}",
            "total_customers": sum(i.customer_count for i in live),
            "total_revenue": format_currency(total, currency),
        }

    # ── sync ─────────────────────────────────────────────────────────────────

    def is_syncing(self, integration_id: int) -> bool:
        return integration_id in self._in_flight

    def sync(self, integration_id: int) -> bool:
        """Trigger a sync; returns False when one is already in flight or the call failed."""
        return self.start_sync(integration_id) == SyncOutcome.STARTED

    def start_sync(self, integration_id: int) -> SyncOutcome:
        if self._disposed or not self._in_flight.claim(integration_id):
            return SyncOutcome.IN_FLIGHT

        try:
            self._client.sync_integration(integration_id)
        except UnauthorizedError:
            raise
        except ApiError as e:
            logger.warning("Sync failed for integration %s: %s", integration_id, e)
            errors = dict(self.sync_errors)
            errors[integration_id] = e.message or "Failed to start sync"
            self._set(sync_errors=errors)
            return SyncOutcome.FAILED
        finally:
            self._in_flight.release(integration_id)

        errors = dict(self.sync_errors)
        errors.pop(integration_id, None)
        self._set(sync_errors=errors)
        self.load()
        return SyncOutcome.STARTED

    # ── disconnect / remove ──────────────────────────────────────────────────

    def _find(self, integration_id: int) -> Optional[Integration]:
        return next((i for i in self.integrations if i.id == integration_id), None)

    def removal_dialog(self, integration_id: int) -> RemovalDialog:
        integration = self._find(integration_id)
        name = integration.platform_name if integration else f"integration {integration_id}"
        return RemovalDialog(integration_id=integration_id, platform_name=name)

    def confirm_removal(self, integration_id: int, choice: RemovalChoice) -> bool:
        """
        Apply the user's answer to the removal dialog. DISCONNECT keeps data
        (POST .../disconnect); REMOVE deletes it (DELETE). There is no other
        way to reach the DELETE call.
        """
        choice = RemovalChoice(choice)
        if choice == RemovalChoice.CANCEL:
            return False

        try:
            if choice == RemovalChoice.DISCONNECT:
                self._client.disconnect_integration(integration_id)
            else:
                self._client.delete_integration(integration_id)
        except UnauthorizedError:
            raise
        except ApiError as e:
            logger.warning("%s failed for integration %s: %s", choice.value, integration_id, e)
            if choice == RemovalChoice.DISCONNECT:
                fallback = "Failed to disconnect integration"
            else:
                fallback = "Failed to remove integration"
            self._set(error=e.message or fallback)
            return False

        logger.info("Integration %s: %s", integration_id, choice.value)
        self.load()
        return True

    # ── connection flows ─────────────────────────────────────────────────────

    def open_flow(self, platform, **kwargs: Any) -> ConnectFlow:
        connector = self._registry.get(platform)
        if connector is None:
            raise ValueError(f"Unknown or disabled platform: {platform}")
        existing = match_integration(connector, self.integrations)
        return connector.create_flow(
            self._client,
            success_callback=self.reload,
            navigator=self._navigator,
            redirect_delay_s=self._redirect_delay_s,
            existing=existing,
            **kwargs,
        )

    # ── sync settings ────────────────────────────────────────────────────────

    def sync_settings(self) -> Dict[str, Any]:
        data = self._client.get_sync_settings().get("data") or {}
        return {
            "auto_sync": bool(data.get("auto_sync", True)),
            "sync_frequency": _frequency(data.get("sync_frequency")),
        }

    def save_sync_settings(self, auto_sync: bool, sync_frequency: int) -> bool:
        if int(sync_frequency) < 1:
            self._set(error="Sync frequency must be at least 1 minute")
            return False
        try:
            self._client.update_sync_settings(auto_sync, int(sync_frequency))
        except UnauthorizedError:
            raise
        except ApiError as e:
            self._set(error=e.message or "Failed to save sync settings")
            return False
        return True

    # ── refresh ──────────────────────────────────────────────────────────────

    def start_auto_refresh(self, interval_s: float) -> None:
        with self._lock:
            if self._disposed:
                return
            self._refresh_interval_s = interval_s
        self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        with self._lock:
            if self._disposed or self._refresh_interval_s is None:
                return
            timer = self._timer_factory(self._refresh_interval_s, self._auto_refresh)
            timer.daemon = True
            self._refresh_timer = timer
        timer.start()

    def _auto_refresh(self) -> None:
        try:
            if self.load():
                # server state wins; keep flags only for integrations still mid-sync
                self._in_flight.release_all(
                    i.id for i in self.integrations if i.status != IntegrationStatus.SYNCING
                )
        except UnauthorizedError:
            self.stop_auto_refresh()
            return
        self._schedule_refresh()

    def stop_auto_refresh(self) -> None:
        with self._lock:
            timer, self._refresh_timer = self._refresh_timer, None
            self._refresh_interval_s = None
        if timer is not None:
            timer.cancel()

    def dispose(self) -> None:
        self.stop_auto_refresh()
        with self._lock:
            self._disposed = True
