"""
Sync engine: remote-first reads with replica fallback, and optimistic writes.

The coordinator owns the in-memory collection for the current view (either
the archived or the active partition). Reads go to the notes API and fall back
to the local replica when there is no credential, the network fails or the
server errors. Writes are applied to the collection immediately, confirmed by
the API, then persisted; on failure only the affected note is put back.

Mutations on the same note are not serialized: whichever response lands last
wins, both in memory and in the replica.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from quicknotes.exceptions import (
    NoteNotFound,
    NotesAuthError,
    NotesError,
    NotesValidationError,
    ReplicaUnavailableError,
)
from quicknotes.session import SyncSession

from .client import RemoteNoteService
from .domain import Note, NoteDraft, NotePatch, SortOrder, ViewParams, ensure_writable
from .models import RawNote
from .projector import filter_notes, page_count, project, sort_notes
from .replica import LocalReplicaStore

LOGGER = logging.getLogger(__name__)

SESSION_EXPIRED = "Session expired. Please log in again."


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    ARCHIVE = "archive"
    RESTORE = "restore"
    DELETE = "delete"
    DELETE_PERMANENTLY = "delete_permanently"


@dataclass(frozen=True)
class Notification:
    level: str  # "success" | "info" | "warning" | "error"
    message: str


@dataclass(frozen=True)
class FetchResult:
    notes: Tuple[Note, ...]
    archived: bool
    stale: bool
    error: Optional[NotesError] = None
    redirect_to_login: bool = False

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error else None


@dataclass(frozen=True)
class MutationResult:
    kind: MutationKind
    ok: bool
    note: Optional[Note] = None
    error: Optional[NotesError] = None
    redirect_to_login: bool = False


@dataclass
class PendingMutation:
    kind: MutationKind
    key: str
    snapshot: Optional[Note]
    compensate: Callable[[], None]


class SyncCoordinator:
    """Orchestrates fetch-with-fallback and optimistic mutations for one view."""

    def __init__(
        self,
        remote: RemoteNoteService,
        replica: LocalReplicaStore,
        session: SyncSession,
        *,
        page_size: int = 5,
    ):
        self._remote = remote
        self._replica = replica
        self._session = session
        self.page_size = page_size
        self._notes: Dict[str, Note] = {}
        self._archived = False
        self._sort_order = SortOrder.NEWEST
        self._pending: Dict[str, List[MutationKind]] = {}
        self._lock = threading.RLock()
        self._listeners: List[Callable[[Tuple[Note, ...]], None]] = []
        self._notifiers: List[Callable[[Notification], None]] = []
        self._auth_handlers: List[Callable[[], None]] = []

    # ------------------------------ Observers --------------------------------

    def subscribe(self, listener: Callable[[Tuple[Note, ...]], None]) -> None:
        """Call ``listener`` with the sorted collection after every change."""
        self._listeners.append(listener)

    def on_notify(self, handler: Callable[[Notification], None]) -> None:
        self._notifiers.append(handler)

    def on_auth_required(self, handler: Callable[[], None]) -> None:
        """Register the "redirect to login" signal."""
        self._auth_handlers.append(handler)

    def _emit_change(self) -> None:
        snapshot = self.notes
        for listener in list(self._listeners):
            listener(snapshot)

    def _notify(self, level: str, message: str) -> None:
        LOGGER.debug("notes.sync.notify %s: %s", level, message)
        notification = Notification(level, message)
        for handler in list(self._notifiers):
            handler(notification)

    def _require_login(self) -> None:
        self._session.clear()
        for handler in list(self._auth_handlers):
            handler()

    # ------------------------------ View state -------------------------------

    @property
    def archived(self) -> bool:
        return self._archived

    @property
    def sort_order(self) -> SortOrder:
        return self._sort_order

    @sort_order.setter
    def sort_order(self, value: SortOrder) -> None:
        self._sort_order = SortOrder(value)
        self._emit_change()

    @property
    def notes(self) -> Tuple[Note, ...]:
        with self._lock:
            return tuple(sort_notes(self._notes.values(), self._sort_order))

    def get(self, key: str) -> Optional[Note]:
        with self._lock:
            return self._notes.get(key)

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return bool(self._pending.get(key))

    def view(
        self,
        search_term: str = "",
        page: int = 1,
        sort_order: Optional[SortOrder] = None,
    ) -> List[Note]:
        params = ViewParams(
            search_term=search_term,
            sort_order=SortOrder(sort_order or self._sort_order),
            page=page,
            page_size=self.page_size,
        )
        with self._lock:
            current = list(self._notes.values())
        return project(current, params)

    def count(self, search_term: str = "") -> int:
        with self._lock:
            current = list(self._notes.values())
        return len(filter_notes(current, search_term))

    def page_count(self, search_term: str = "") -> int:
        return page_count(self.count(search_term), self.page_size)

    def _load(self, notes: Iterable[Note], archived: bool) -> None:
        with self._lock:
            self._archived = archived
            self._notes = {n.server_id: n for n in notes if n.server_id}
        self._emit_change()

    # --------------------------- Fetch with fallback -------------------------

    def _read_cache(self, archived: bool) -> List[Note]:
        try:
            cached = self._replica.query_by_archived_flag(archived)
        except ReplicaUnavailableError as exc:
            LOGGER.warning("Replica unavailable, no cached notes: %s", exc)
            return []
        return sort_notes(cached, self._sort_order)

    def _fallback(
        self, archived: bool, error: Optional[NotesError], redirect: bool = False
    ) -> FetchResult:
        cached = self._read_cache(archived)
        self._load(cached, archived)
        LOGGER.info("Serving %d cached notes (archived=%s)", len(cached), archived)
        return FetchResult(
            notes=tuple(cached),
            archived=archived,
            stale=True,
            error=error,
            redirect_to_login=redirect,
        )

    def fetch(
        self, archived: bool = False, sort_order: Optional[SortOrder] = None
    ) -> FetchResult:
        """Load one partition from the API, or from the replica when that fails."""
        if sort_order is not None:
            self._sort_order = SortOrder(sort_order)

        if not self._session.is_authenticated:
            result = self._fallback(archived, None)
            if result.notes:
                self._notify("info", "Showing cached notes (no token, offline mode)")
                return result
            self._notify("error", "No token found. Please log in.")
            for handler in list(self._auth_handlers):
                handler()
            return replace(result, redirect_to_login=True)

        try:
            raw_notes = self._remote.list(archived)
        except NotesAuthError as exc:
            LOGGER.warning("Notes fetch rejected: %s", exc)
            self._require_login()
            self._notify("error", SESSION_EXPIRED)
            return self._fallback(archived, exc, redirect=True)
        except NotesError as exc:
            LOGGER.warning("Notes fetch failed, falling back to replica: %s", exc)
            result = self._fallback(archived, exc)
            self._notify("error", str(exc))
            if result.notes:
                self._notify("info", "Showing cached notes (offline mode)")
            return result

        notes = [raw.to_note() for raw in raw_notes]
        notes = sort_notes(
            [n for n in notes if n.is_archived == archived], self._sort_order
        )
        try:
            self._replica.replace_all(notes, archived=archived)
        except ReplicaUnavailableError as exc:
            LOGGER.warning("Could not refresh replica: %s", exc)
        self._load(notes, archived)
        self._notify("success", "Notes synced from server!")
        return FetchResult(notes=tuple(notes), archived=archived, stale=False)

    def refresh(self) -> FetchResult:
        return self.fetch(self._archived)

    # -------------------------- Optimistic mutations -------------------------

    def _begin(
        self, kind: MutationKind, key: str, optimistic: Optional[Note]
    ) -> PendingMutation:
        with self._lock:
            snapshot = self._notes.get(key)
            view_archived = self._archived
            if optimistic is None:
                self._notes.pop(key, None)
            else:
                self._notes[key] = optimistic
            self._pending.setdefault(key, []).append(kind)

        def compensate() -> None:
            with self._lock:
                if self._archived != view_archived:
                    return
                if snapshot is None:
                    self._notes.pop(key, None)
                else:
                    self._notes[key] = snapshot

        LOGGER.debug("notes.sync.pending %s key=%s", kind.value, key)
        self._emit_change()
        return PendingMutation(kind, key, snapshot, compensate)

    def _settle(self, pending: PendingMutation) -> None:
        with self._lock:
            kinds = self._pending.get(pending.key, [])
            if pending.kind in kinds:
                kinds.remove(pending.kind)
            if not kinds:
                self._pending.pop(pending.key, None)

    def _rollback(
        self, pending: PendingMutation, error: NotesError, message: str
    ) -> MutationResult:
        pending.compensate()
        LOGGER.warning(
            "notes.sync.rollback %s key=%s: %s", pending.kind.value, pending.key, error
        )
        redirect = isinstance(error, NotesAuthError)
        if redirect:
            self._require_login()
            self._notify("error", SESSION_EXPIRED)
        else:
            self._notify("error", message)
        self._emit_change()
        return MutationResult(
            pending.kind, False, pending.snapshot, error, redirect_to_login=redirect
        )

    def _persist(self, note: Note) -> Note:
        try:
            return self._replica.upsert(note)
        except ReplicaUnavailableError as exc:
            LOGGER.warning("Could not persist note %s: %s", note.server_id, exc)
            return note

    def _confirm(self, pending: PendingMutation, note: Note) -> Note:
        note = self._persist(note)
        with self._lock:
            if pending.kind is MutationKind.CREATE:
                self._notes.pop(pending.key, None)
            if note.is_archived == self._archived:
                self._notes[note.server_id] = note
            else:
                self._notes.pop(note.server_id, None)
        self._emit_change()
        return note

    def _forget(self, server_id: str) -> None:
        try:
            self._replica.remove(server_id)
        except ReplicaUnavailableError as exc:
            LOGGER.warning("Could not drop note %s from replica: %s", server_id, exc)

    def _precheck(self, kind: MutationKind, key: str) -> Tuple[Optional[Note], Optional[MutationResult]]:
        current = self.get(key)
        if current is None:
            error = NoteNotFound(f"Note {key} is not in the current view")
            self._notify("error", str(error))
            return None, MutationResult(kind, False, error=error)
        if not self._session.is_authenticated:
            return current, self._no_session(kind)
        return current, None

    def _no_session(self, kind: MutationKind) -> MutationResult:
        self._require_login()
        self._notify("error", SESSION_EXPIRED)
        return MutationResult(
            kind,
            False,
            error=NotesAuthError("No active session. Please log in."),
            redirect_to_login=True,
        )

    def toggle_pin(self, server_id: str) -> MutationResult:
        current, rejected = self._precheck(MutationKind.UPDATE, server_id)
        if rejected:
            return rejected
        target = not current.is_pinned
        verb = "pin" if target else "unpin"
        pending = self._begin(
            MutationKind.UPDATE, server_id, replace(current, is_pinned=target)
        )
        try:
            raw = self._remote.update(server_id, NotePatch(is_pinned=target))
        except NotesError as exc:
            return self._rollback(pending, exc, f"Failed to {verb} note. Please try again.")
        else:
            note = self._confirm(pending, raw.to_note())
            self._notify("success", f"Note {verb}ned successfully!")
            return MutationResult(MutationKind.UPDATE, True, note)
        finally:
            self._settle(pending)

    def edit(
        self,
        server_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        tags: Optional[List[str]] = None,
        media_file: Optional[str] = None,
        remove_media: bool = False,
    ) -> MutationResult:
        patch = NotePatch(
            title=title,
            content=content,
            tags=tags,
            media_file=media_file,
            remove_media=remove_media,
        )
        current = self.get(server_id)
        if current is not None:
            optimistic = patch.apply_to(current)
            try:
                ensure_writable(optimistic.title, optimistic.content)
            except NotesValidationError as exc:
                self._notify("warning", str(exc))
                return MutationResult(MutationKind.UPDATE, False, current, exc)

        current, rejected = self._precheck(MutationKind.UPDATE, server_id)
        if rejected:
            return rejected
        pending = self._begin(MutationKind.UPDATE, server_id, patch.apply_to(current))
        try:
            raw = self._remote.update(server_id, patch)
        except OSError as exc:
            error = NotesValidationError(f"Cannot read media file: {exc}")
            return self._rollback(pending, error, str(error))
        except NotesError as exc:
            return self._rollback(pending, exc, "Failed to update note.")
        else:
            note = self._confirm(pending, raw.to_note())
            self._notify("success", "Note updated successfully!")
            return MutationResult(MutationKind.UPDATE, True, note)
        finally:
            self._settle(pending)

    def _remove_from_view(
        self,
        kind: MutationKind,
        server_id: str,
        call: Callable[[str], Optional[RawNote]],
        confirmed: Callable[[Note], Optional[Note]],
        success: str,
        failure: str,
    ) -> MutationResult:
        current, rejected = self._precheck(kind, server_id)
        if rejected:
            return rejected
        pending = self._begin(kind, server_id, None)
        try:
            raw = call(server_id)
        except NotesError as exc:
            return self._rollback(pending, exc, failure)
        else:
            note = confirmed(raw.to_note() if raw is not None else current)
            if note is None:
                self._forget(server_id)
            else:
                note = self._confirm(pending, note)
            self._notify("success", success)
            return MutationResult(kind, True, note)
        finally:
            self._settle(pending)

    def archive(self, server_id: str) -> MutationResult:
        return self._remove_from_view(
            MutationKind.ARCHIVE,
            server_id,
            self._remote.set_archived,
            lambda n: replace(n, is_archived=True),
            "Note archived successfully!",
            "Failed to archive note. Please try again.",
        )

    def restore(self, server_id: str) -> MutationResult:
        return self._remove_from_view(
            MutationKind.RESTORE,
            server_id,
            self._remote.restore,
            lambda n: replace(n, is_archived=False),
            "Note restored successfully!",
            "Failed to restore note. Please try again.",
        )

    def delete(self, server_id: str) -> MutationResult:
        return self._remove_from_view(
            MutationKind.DELETE,
            server_id,
            self._remote.delete,
            lambda n: None,
            "Note deleted successfully!",
            "Failed to delete note.",
        )

    def delete_permanently(self, server_id: str) -> MutationResult:
        return self._remove_from_view(
            MutationKind.DELETE_PERMANENTLY,
            server_id,
            self._remote.delete_permanently,
            lambda n: None,
            "Note permanently deleted.",
            "Failed to permanently delete note.",
        )

    def create(
        self,
        title: str,
        content: str,
        tags: Optional[List[str]] = None,
        media_file: Optional[str] = None,
    ) -> MutationResult:
        draft = NoteDraft(title=title, content=content, tags=list(tags or []), media_file=media_file)
        try:
            draft.validate()
        except NotesValidationError as exc:
            self._notify("warning", str(exc))
            return MutationResult(MutationKind.CREATE, False, error=exc)
        if not self._session.is_authenticated:
            return self._no_session(MutationKind.CREATE)

        now = datetime.now(timezone.utc)
        optimistic = Note(
            server_id=None,
            title=draft.title,
            content=draft.content,
            tags=tuple(draft.tags),
            created_at=now,
            updated_at=now,
        )
        key = f"pending-{uuid.uuid4().hex}"
        # Only the active view shows freshly created notes
        pending = self._begin(
            MutationKind.CREATE, key, None if self._archived else optimistic
        )
        try:
            raw = self._remote.create(draft)
        except OSError as exc:
            error = NotesValidationError(f"Cannot read media file: {exc}")
            return self._rollback(pending, error, str(error))
        except NotesError as exc:
            return self._rollback(pending, exc, "Failed to add note.")
        else:
            note = self._confirm(pending, raw.to_note())
            self._notify("success", "Note added successfully!")
            return MutationResult(MutationKind.CREATE, True, note)
        finally:
            self._settle(pending)
