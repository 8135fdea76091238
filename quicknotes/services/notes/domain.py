# quicknotes/services/notes/domain.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from quicknotes.exceptions import NotesValidationError

# What the editor produces for an empty document
EMPTY_CONTENT = "<p></p>"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    NONE = "none"

    @classmethod
    def from_wire(
        cls, media_type: Optional[str], media_path: Optional[str] = None
    ) -> "MediaKind":
        if not media_path:
            return cls.NONE
        kind = (media_type or "").strip().lower()
        if kind.startswith("image"):
            return cls.IMAGE
        if kind.startswith("video"):
            return cls.VIDEO
        return cls.DOCUMENT


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"


@dataclass(frozen=True)
class Note:
    server_id: Optional[str]
    title: str
    content: str
    tags: Tuple[str, ...] = ()
    media_reference: Optional[str] = None
    media_kind: MediaKind = MediaKind.NONE
    is_pinned: bool = False
    is_archived: bool = False
    created_at: datetime = EPOCH
    updated_at: Optional[datetime] = None
    # Assigned by the replica, never sent to the server
    local_key: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class ViewParams:
    search_term: str = ""
    sort_order: SortOrder = SortOrder.NEWEST
    page: int = 1
    page_size: int = 5


def ensure_writable(title: Optional[str], content: Optional[str]) -> None:
    """Raise NotesValidationError when title or content is blank."""
    if not title or not title.strip():
        raise NotesValidationError("Title and content cannot be empty.")
    if not content or not content.strip() or content.strip() == EMPTY_CONTENT:
        raise NotesValidationError("Title and content cannot be empty.")


@dataclass(frozen=True)
class NoteDraft:
    """A note about to be created."""

    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    media_file: Optional[str] = None

    def validate(self) -> None:
        ensure_writable(self.title, self.content)


@dataclass(frozen=True)
class NotePatch:
    """
    Partial update of a note. ``None`` means "leave unchanged".

    A patch that only flips ``is_pinned`` is sent as JSON; anything touching
    title, content, tags or media goes out as a multipart form.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    is_pinned: Optional[bool] = None
    media_file: Optional[str] = None
    remove_media: bool = False

    @property
    def is_form(self) -> bool:
        return (
            self.title is not None
            or self.content is not None
            or self.tags is not None
            or self.media_file is not None
            or self.remove_media
        )

    def apply_to(self, note: Note) -> Note:
        """Return the optimistic version of ``note`` with this patch applied."""
        changes = {}
        if self.title is not None:
            changes["title"] = self.title
        if self.content is not None:
            changes["content"] = self.content
        if self.tags is not None:
            changes["tags"] = tuple(self.tags)
        if self.is_pinned is not None:
            changes["is_pinned"] = self.is_pinned
        if self.remove_media:
            changes["media_reference"] = None
            changes["media_kind"] = MediaKind.NONE
        return replace(note, **changes)
