"""Local persistent mirror of server-held notes (SQLAlchemy)."""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    func,
    select,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from quicknotes.exceptions import ReplicaUnavailableError

from .domain import EPOCH, MediaKind, Note

LOGGER = logging.getLogger(__name__)

Base = declarative_base()


class DBNote(Base):
    """Replica row for a note."""

    __tablename__ = "notes"
    local_key = Column(Integer, primary_key=True, autoincrement=True)
    server_id = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(1024), nullable=False, index=True)
    content = Column(Text, nullable=False)
    tags = Column(Text, nullable=False, default="[]")
    media_path = Column(Text, nullable=True)
    media_kind = Column(String(16), nullable=False, default=MediaKind.NONE.value)
    is_pinned = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False, index=True)
    # Stored as naive UTC; SQLite keeps no offset
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<DBNote(local_key={self.local_key}, server_id='{self.server_id}')>"


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _fill_row(row: DBNote, note: Note) -> None:
    row.server_id = note.server_id
    row.title = note.title
    row.content = note.content
    row.tags = json.dumps(list(note.tags))
    row.media_path = note.media_reference
    row.media_kind = MediaKind(note.media_kind).value
    row.is_pinned = bool(note.is_pinned)
    row.is_archived = bool(note.is_archived)
    row.created_at = _to_naive_utc(note.created_at)
    row.updated_at = _to_naive_utc(note.updated_at)


def _media_kind(row: DBNote) -> MediaKind:
    try:
        return MediaKind(row.media_kind or MediaKind.NONE.value)
    except ValueError:
        LOGGER.warning(
            "notes.replica.bad_media_kind server_id=%s value=%r",
            row.server_id,
            row.media_kind,
        )
        return MediaKind.NONE


def _row_to_note(row: DBNote) -> Note:
    try:
        tags = tuple(json.loads(row.tags or "[]"))
    except ValueError:
        LOGGER.warning("notes.replica.bad_tags server_id=%s", row.server_id)
        tags = ()
    return Note(
        server_id=row.server_id,
        title=row.title,
        content=row.content,
        tags=tags,
        media_reference=row.media_path,
        media_kind=_media_kind(row),
        is_pinned=bool(row.is_pinned),
        is_archived=bool(row.is_archived),
        created_at=_from_naive_utc(row.created_at) or EPOCH,
        updated_at=_from_naive_utc(row.updated_at),
        local_key=row.local_key,
    )


def _create_engine(url: str):
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    database = parsed.database
    if not database or database == ":memory:":
        # One shared connection, otherwise each session sees its own empty DB
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        os.makedirs(os.path.dirname(os.path.abspath(database)), exist_ok=True)
        engine = create_engine(
            url, connect_args={"check_same_thread": False, "timeout": 30}
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    return engine


class LocalReplicaStore:
    """
    Key-value cache of notes.

    Rows are keyed by an auto-assigned ``local_key`` with a unique index on the
    server id. Every SQLAlchemy failure surfaces as ReplicaUnavailableError so
    callers can fall back to "no cache".
    """

    def __init__(self, url: str = "sqlite://"):
        self.url = url
        try:
            self._engine = _create_engine(url)
            Base.metadata.create_all(self._engine)
        except (SQLAlchemyError, OSError) as exc:
            LOGGER.error("notes.replica.init_fail url=%s: %s", url, exc)
            raise ReplicaUnavailableError(f"Cannot open replica: {exc}") from exc
        self.session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        LOGGER.debug("notes.replica.ready url=%s", url)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            LOGGER.warning("notes.replica.error %s", exc)
            raise ReplicaUnavailableError(str(exc)) from exc

    def replace_all(self, notes: Iterable[Note], archived: Optional[bool] = None) -> int:
        """
        Clear the store and bulk-insert ``notes``.

        With ``archived`` set, only that partition is cleared (plus any row that
        an incoming note would collide with), leaving the other one intact.
        Not atomic with respect to readers on other connections.
        """
        incoming: Dict[str, Note] = {}
        for note in notes:
            if not note.server_id:
                LOGGER.debug("notes.replica.skip_unsaved title=%r", note.title)
                continue
            incoming[note.server_id] = note

        with self._session() as session:
            if archived is None:
                session.execute(delete(DBNote))
            else:
                session.execute(delete(DBNote).where(DBNote.is_archived == archived))
                if incoming:
                    session.execute(
                        delete(DBNote).where(DBNote.server_id.in_(list(incoming)))
                    )
            for note in incoming.values():
                row = DBNote()
                _fill_row(row, note)
                session.add(row)
            session.commit()
        LOGGER.info(
            "Replica refreshed with %d notes (partition=%s)", len(incoming), archived
        )
        return len(incoming)

    def upsert(self, note: Note) -> Note:
        """Insert or update by server id; returns the note with its local key."""
        if not note.server_id:
            raise ValueError("cannot persist a note without a server id")
        with self._session() as session:
            row = session.scalar(select(DBNote).where(DBNote.server_id == note.server_id))
            if row is None:
                row = DBNote()
                session.add(row)
            _fill_row(row, note)
            session.commit()
            LOGGER.debug(
                "notes.replica.upsert server_id=%s local_key=%s",
                note.server_id,
                row.local_key,
            )
            return _row_to_note(row)

    def remove(self, server_id: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(DBNote).where(DBNote.server_id == server_id))
            session.commit()
            removed = bool(result.rowcount)
        LOGGER.debug("notes.replica.remove server_id=%s removed=%s", server_id, removed)
        return removed

    def get(self, server_id: str) -> Optional[Note]:
        with self._session() as session:
            row = session.scalar(select(DBNote).where(DBNote.server_id == server_id))
            return _row_to_note(row) if row is not None else None

    def query_by_archived_flag(self, archived: bool) -> List[Note]:
        """Notes in one partition, in no guaranteed order."""
        with self._session() as session:
            rows = session.scalars(
                select(DBNote).where(DBNote.is_archived == archived)
            ).all()
            return [_row_to_note(row) for row in rows]

    def count(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(DBNote)) or 0

    def close(self) -> None:
        self._engine.dispose()
