"""QuickNotes client library."""

from quicknotes.base import QuickNotesService
from quicknotes.config import ClientConfig
from quicknotes.session import SyncSession

__all__ = ["QuickNotesService", "ClientConfig", "SyncSession"]
