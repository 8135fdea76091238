"""Holder for the bearer credential shared by the remote service and the sync engine."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

LOGGER = logging.getLogger(__name__)

SessionListener = Callable[[Optional[str]], None]


class SyncSession:
    """
    Explicit credential slot.

    Set on successful login, cleared on logout or on any AuthError. Its
    presence gates every remote call. Listeners are told about every change
    so that callers (e.g. the CLI) can persist or forget the token.
    """

    def __init__(self, token: Optional[str] = None):
        self._token = token or None
        self._lock = threading.Lock()
        self._listeners: List[SessionListener] = []

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def set_token(self, token: str) -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        with self._lock:
            self._token = token
        LOGGER.debug("notes.session.set")
        self._notify(token)

    def clear(self) -> None:
        with self._lock:
            had_token = self._token is not None
            self._token = None
        if had_token:
            LOGGER.info("Session credential cleared")
            self._notify(None)

    def auth_headers(self) -> Dict[str, str]:
        token = self.token
        if token is None:
            return {}
        return {"Authorization": f"Bearer {token}"}

    def _notify(self, token: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(token)
