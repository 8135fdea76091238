"""Public API for the notes service."""

from .client import RemoteNoteService
from .domain import EMPTY_CONTENT, MediaKind, Note, NoteDraft, NotePatch, SortOrder, ViewParams
from .models import RawNote
from .projector import clamp_page, page_count, project
from .replica import LocalReplicaStore
from .sync import FetchResult, MutationKind, MutationResult, Notification, SyncCoordinator
from .tags import decode as decode_tags
from .tags import parse_tag_input

__all__ = [
    "SyncCoordinator",
    "RemoteNoteService",
    "LocalReplicaStore",
    "Note",
    "NoteDraft",
    "NotePatch",
    "RawNote",
    "MediaKind",
    "SortOrder",
    "ViewParams",
    "FetchResult",
    "MutationResult",
    "MutationKind",
    "Notification",
    "EMPTY_CONTENT",
    "project",
    "page_count",
    "clamp_page",
    "decode_tags",
    "parse_tag_input",
]
