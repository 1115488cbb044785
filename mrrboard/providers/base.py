"""
PlatformConnector ABC: implement this to add a new billing platform to the
integrations page.

Each connector describes one platform and builds the ConnectFlow that
collects its credentials. Flows talk to the revenue API and turn its answers
into UI state; they never modify the integration list themselves. The
embedding view passes a success_callback and reloads when it fires.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from mrrboard.config import DEFAULT_REDIRECT_DELAY_S, disabled_platforms_from_env
from mrrboard.errors import ApiError, UnauthorizedError
from mrrboard.integrations.models import Integration, Platform

logger = logging.getLogger(__name__)

INTEGRATIONS_PATH = "/integrations"


class Navigator(Protocol):
    def navigate(self, path: str, delay_s: float = 0) -> None:
        ...


class TimerNavigator:
    """Runs `go(path)` now, or after `delay_s` on a threading.Timer."""

    def __init__(self, go: Callable[[str], None]) -> None:
        self._go = go
        self._timers: List[threading.Timer] = []

    def navigate(self, path: str, delay_s: float = 0) -> None:
        if delay_s <= 0:
            self._go(path)
            return
        timer = threading.Timer(delay_s, self._go, args=(path,))
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def cancel_all(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()


class RecordingNavigator:
    """Remembers navigation requests so a web response can hand them to the browser."""

    def __init__(self) -> None:
        self.requests: List[Tuple[str, float]] = []

    def navigate(self, path: str, delay_s: float = 0) -> None:
        self.requests.append((path, float(delay_s)))

    @property
    def pending(self) -> Optional[Dict[str, Any]]:
        if not self.requests:
            return None
        path, delay_s = self.requests[-1]
        return {"to": path, "after_ms": int(round(delay_s * 1000))}


class FlowState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"


class ConnectFlow(ABC):
    """
    Shared state handling for credential flows.

    Entered form data survives every failure so the user can retry; only
    reset() clears it. Once dispose() has been called (the view went away),
    no further state changes or callbacks are applied.
    """

    platform: Platform

    def __init__(
        self,
        client,
        *,
        success_callback: Optional[Callable[[], None]] = None,
        navigator: Optional[Navigator] = None,
        redirect_delay_s: float = DEFAULT_REDIRECT_DELAY_S,
    ) -> None:
        self._client = client
        self._success_callback = success_callback
        self._navigator = navigator
        self.redirect_delay_s = redirect_delay_s
        self._lock = threading.RLock()
        self._disposed = False

        self.state = FlowState.IDLE
        self.error: Optional[str] = None
        self.field_errors: Dict[str, str] = {}
        self.message: Optional[str] = None

    # ── lifecycle ────────────────────────────────────────────────────────────

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        with self._lock:
            self._disposed = True

    def _update(self, **changes: Any) -> bool:
        with self._lock:
            if self._disposed:
                logger.debug("%s disposed; dropping update %s", type(self).__name__, sorted(changes))
                return False
            for name, value in changes.items():
                setattr(self, name, value)
            return True

    def _begin(self) -> bool:
        return self._update(state=FlowState.SUBMITTING, error=None, field_errors={}, message=None)

    def _reject(self, field: str, message: str) -> bool:
        """Local validation failure; nothing is sent."""
        self._update(state=FlowState.ERROR, error=message, field_errors={field: message}, message=None)
        return False

    def _fail(self, exc: Exception, fallback: str) -> bool:
        if isinstance(exc, UnauthorizedError):
            # handled globally: the session is already cleared, the caller redirects
            self._update(state=FlowState.IDLE)
            raise exc
        message = exc.message if isinstance(exc, ApiError) and exc.message else fallback
        logger.warning("%s connection failed: %s", self.platform.value, exc)
        self._update(state=FlowState.ERROR, error=message)
        return False

    def _succeed(self, message: Optional[str], navigate_to: Optional[str] = None, delay_s: float = 0) -> bool:
        if not self._update(state=FlowState.SUCCESS, error=None, field_errors={}, message=message):
            return False
        if self._success_callback is not None:
            self._success_callback()
        if navigate_to:
            self._navigate(navigate_to, delay_s)
        return True

    def _navigate(self, path: str, delay_s: float = 0) -> None:
        if self._disposed or self._navigator is None:
            return
        self._navigator.navigate(path, delay_s)

    @abstractmethod
    def reset(self) -> None:
        """Start over: clear entered data and outcome."""

    def _reset_outcome(self) -> None:
        self._update(state=FlowState.IDLE, error=None, field_errors={}, message=None)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "platform": self.platform.value,
            "state": self.state.value,
            "error": self.error,
            "field_errors": dict(self.field_errors),
            "message": self.message,
        }


class PlatformConnector(ABC):

    # ── Identity ─────────────────────────────────────────────────────────────

    @property
    @abstractmethod
    def key(self) -> Platform:
        """Platform key stored on integration records."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name, e.g. 'Stripe', 'E-conomic'."""

    @property
    def description(self) -> str:
        return ""

    @property
    def connection_type(self) -> str:
        return ""

    # Position on the integrations page.
    order: int = 100

    @classmethod
    def is_available(cls) -> bool:
        """False when the platform is switched off through MRRBOARD_DISABLED_PLATFORMS."""
        key = cls.key
        return not isinstance(key, Platform) or key.value not in disabled_platforms_from_env()

    # ── Flow ─────────────────────────────────────────────────────────────────

    @abstractmethod
    def create_flow(
        self,
        client,
        *,
        success_callback: Optional[Callable[[], None]] = None,
        navigator: Optional[Navigator] = None,
        redirect_delay_s: float = DEFAULT_REDIRECT_DELAY_S,
        existing: Optional[Integration] = None,
    ) -> ConnectFlow:
        """Build the credential flow; `existing` is the current record when reconnecting."""

    # ── Optional ─────────────────────────────────────────────────────────────

    def matches_name(self, name: str) -> bool:
        """Legacy match on display name, for records that predate platform keys."""
        if not name:
            return False
        lowered = name.lower()
        candidates = {self.display_name.lower(), self.key.value}
        return any(c and c in lowered for c in candidates)

    def describe(self) -> dict:
        return {
            "key": self.key.value,
            "display_name": self.display_name,
            "description": self.description,
            "connection_type": self.connection_type,
        }
