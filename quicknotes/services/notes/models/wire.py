"""
Wire model for notes as returned by the notes API.

Field names follow the JSON payload (``mediaPath``, ``isPinned``, ...). The
``tags`` field is left untyped on purpose: it can be an array or a string that
needs the tag codec, and ``to_note`` is the single place where it gets
normalized.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from ..domain import EPOCH, MediaKind, Note
from ..tags import decode
from ._base import WireModel


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RawNote(WireModel):
    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "_id"))
    title: str = ""
    content: str = ""
    tags: Any = None
    media_path: Optional[str] = Field(default=None, alias="mediaPath")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    is_pinned: bool = Field(default=False, alias="isPinned")
    is_archived: bool = Field(default=False, alias="isArchived")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("title", "content", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("is_pinned", "is_archived", mode="before")
    @classmethod
    def _none_to_false(cls, v):
        return False if v is None else v

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)

    def to_note(self, local_key: Optional[int] = None) -> Note:
        """Convert to a domain Note, running the tag codec on ``tags``."""
        return Note(
            server_id=self.id,
            title=self.title,
            content=self.content,
            tags=tuple(decode(self.tags)),
            media_reference=self.media_path or None,
            media_kind=MediaKind.from_wire(self.media_type, self.media_path),
            is_pinned=self.is_pinned,
            is_archived=self.is_archived,
            created_at=self.created_at or self.updated_at or EPOCH,
            updated_at=self.updated_at,
            local_key=local_key,
        )


class LoginResponse(WireModel):
    token: str
