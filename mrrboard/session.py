"""
AuthSession: the one shared mutable resource of the dashboard: the bearer
token (plus a cached user object for display).

The session is passed explicitly to the API client. Any request may
invalidate it on a 401; invalidation is idempotent, so concurrent callers do
not need to coordinate.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"


class TokenStore(Protocol):
    def get_token(self) -> Optional[str]:
        ...

    def get_user(self) -> Optional[Dict[str, Any]]:
        ...

    def save(self, token: str, user: Optional[Dict[str, Any]]) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryTokenStore:
    """Process-local store, used by scripts and tests."""

    def __init__(self, token: Optional[str] = None, user: Optional[Dict[str, Any]] = None) -> None:
        self._token = token
        self._user = user

    def get_token(self) -> Optional[str]:
        return self._token

    def get_user(self) -> Optional[Dict[str, Any]]:
        return self._user

    def save(self, token: str, user: Optional[Dict[str, Any]]) -> None:
        self._token = token
        self._user = user

    def clear(self) -> None:
        self._token = None
        self._user = None


class FlaskSessionTokenStore:
    """Keeps the token and user in Flask's signed session cookie."""

    TOKEN_KEY = "auth_token"
    USER_KEY = "user"

    def get_token(self) -> Optional[str]:
        from flask import session
        return session.get(self.TOKEN_KEY)

    def get_user(self) -> Optional[Dict[str, Any]]:
        from flask import session
        return session.get(self.USER_KEY)

    def save(self, token: str, user: Optional[Dict[str, Any]]) -> None:
        from flask import session
        session[self.TOKEN_KEY] = token
        if user is not None:
            session[self.USER_KEY] = user

    def clear(self) -> None:
        from flask import session
        session.pop(self.TOKEN_KEY, None)
        session.pop(self.USER_KEY, None)


class AuthSession:
    def __init__(
        self,
        store: Optional[TokenStore] = None,
        on_unauthorized: Optional[Callable[[str], None]] = None,
        login_path: str = LOGIN_PATH,
    ) -> None:
        self._store = store if store is not None else MemoryTokenStore()
        self._on_unauthorized = on_unauthorized
        self._login_path = login_path
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[str]:
        return self._store.get_token()

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._store.get_user()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def login(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        if not (token and token.strip()):
            raise ValueError("token is required")
        with self._lock:
            self._store.save(token.strip(), user)

    def logout(self) -> None:
        with self._lock:
            self._store.clear()

    def invalidate(self) -> bool:
        """
        Clear the token after a 401 and send the user to the login route.
        Returns True only for the call that actually cleared a token.
        """
        with self._lock:
            had_token = bool(self._store.get_token())
            self._store.clear()

        if not had_token:
            return False

        logger.info("Session token rejected by API; redirecting to %s", self._login_path)
        if self._on_unauthorized is not None:
            self._on_unauthorized(self._login_path)
        return True
