from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet
import os

from mrrboard.errors import ConfigError

DEFAULT_API_TIMEOUT_S = 30.0
DEFAULT_REDIRECT_DELAY_S = 2.0
DEFAULT_SYNC_POLL_S = 30.0


def _flag(name: str) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    return raw in ("true", "1", "yes")


def _float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def disabled_platforms_from_env() -> FrozenSet[str]:
    return frozenset(
        p.strip().lower()
        for p in (os.environ.get("MRRBOARD_DISABLED_PLATFORMS") or "").split(",")
        if p.strip()
    )


@dataclass(frozen=True)
class DashboardConfig:
    api_url: str
    api_timeout_s: float = DEFAULT_API_TIMEOUT_S
    debug_mode: bool = False
    app_name: str = "MRR Dashboard"
    company_name: str = "Your Company"
    redirect_delay_s: float = DEFAULT_REDIRECT_DELAY_S
    sync_poll_s: float = DEFAULT_SYNC_POLL_S
    disabled_platforms: FrozenSet[str] = frozenset()
    secret_key: str = "dev"

    @staticmethod
    def from_env() -> "DashboardConfig":
        api_url = (os.environ.get("MRRBOARD_API_URL") or "").strip().rstrip("/")
        if not api_url:
            raise ConfigError(
                "Missing required env var: MRRBOARD_API_URL "
                "(e.g. MRRBOARD_API_URL=https://your-api-domain.com/api)"
            )

        return DashboardConfig(
            api_url=api_url,
            api_timeout_s=_float("MRRBOARD_API_TIMEOUT_S", DEFAULT_API_TIMEOUT_S),
            debug_mode=_flag("MRRBOARD_DEBUG_MODE"),
            app_name=(os.environ.get("MRRBOARD_APP_NAME") or "").strip() or "MRR Dashboard",
            company_name=(os.environ.get("MRRBOARD_COMPANY_NAME") or "").strip() or "Your Company",
            redirect_delay_s=_float("MRRBOARD_REDIRECT_DELAY_S", DEFAULT_REDIRECT_DELAY_S),
            sync_poll_s=_float("MRRBOARD_SYNC_POLL_S", DEFAULT_SYNC_POLL_S),
            disabled_platforms=disabled_platforms_from_env(),
            secret_key=(os.environ.get("SECRET_KEY") or "").strip() or "dev",
        )

    def api_endpoint(self, path: str = "") -> str:
        """Join a path onto the API base URL without doubling slashes."""
        base = self.api_url.rstrip("/")
        return f"{base}/{path.lstrip('/')}" if path else base
