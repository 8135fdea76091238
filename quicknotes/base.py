"""Entry point tying the HTTP session, credential, replica and sync engine together."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from quicknotes.config import ClientConfig
from quicknotes.exceptions import ReplicaUnavailableError
from quicknotes.session import SyncSession
from quicknotes.services.notes.client import RemoteNoteService
from quicknotes.services.notes.replica import LocalReplicaStore
from quicknotes.services.notes.sync import SyncCoordinator

LOGGER = logging.getLogger(__name__)


class QuickNotesService:
    """
    A QuickNotes account.

    Usage:
        from quicknotes import QuickNotesService
        api = QuickNotesService(api_url="http://localhost:5000/api")
        api.login("me@example.com", "secret")
        result = api.notes.fetch()
        for note in api.notes.view(page=1):
            print(note.title)
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        config: Optional[ClientConfig] = None,
        http: Optional[requests.Session] = None,
        sync_session: Optional[SyncSession] = None,
        replica: Optional[LocalReplicaStore] = None,
    ):
        self.config = config or ClientConfig.from_env(api_url=api_url)
        self.http = http or requests.Session()
        self.http.headers.setdefault("Accept", "application/json")
        self.session = sync_session or SyncSession(token)
        if token and sync_session is not None:
            self.session.set_token(token)
        self.remote = RemoteNoteService(
            self.config.api_url,
            self.http,
            self.session,
            timeout=self.config.timeout,
            debug=self.config.debug,
        )
        self._replica = replica
        self._notes: Optional[SyncCoordinator] = None

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    @property
    def replica(self) -> LocalReplicaStore:
        if self._replica is None:
            url = self.config.resolved_replica_url()
            try:
                self._replica = LocalReplicaStore(url)
            except ReplicaUnavailableError as exc:
                # Notes still sync; nothing survives the process
                LOGGER.warning("Replica at %s unavailable, using memory: %s", url, exc)
                self._replica = LocalReplicaStore("sqlite://")
        return self._replica

    @property
    def notes(self) -> SyncCoordinator:
        """The sync engine for this account."""
        if self._notes is None:
            self._notes = SyncCoordinator(
                self.remote,
                self.replica,
                self.session,
                page_size=self.config.page_size,
            )
        return self._notes

    def login(self, email: str, password: str) -> str:
        """Authenticate and keep the bearer token for subsequent calls."""
        token = self.remote.login(email, password)
        self.session.set_token(token)
        LOGGER.info("Logged in as %s", email)
        return token

    def logout(self) -> None:
        self.session.clear()

    def __repr__(self) -> str:
        state = "authenticated" if self.is_authenticated else "anonymous"
        return f"<QuickNotesService: {self.config.api_url} ({state})>"
