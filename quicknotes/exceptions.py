"""Exceptions raised by the QuickNotes client."""

from typing import Optional


class NotesError(Exception):
    """Base QuickNotes error."""


class NotesValidationError(NotesError):
    """A required field is empty; rejected before any network call."""


class NotesNetworkError(NotesError):
    """Transport failure or timeout while talking to the API."""


class NotesAuthError(NotesError):
    """Missing credential or HTTP 401."""


class NotesServerError(NotesError):
    """Any other non-2xx response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[object] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class NotesRateLimited(NotesServerError):
    """429 Too Many Requests."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class NoteNotFound(NotesError):
    """The note is not part of the current view."""


class TagDecodeError(NotesError):
    """A tag field could not be decoded. Never leaves the tag codec."""


class ReplicaUnavailableError(NotesError):
    """The local replica could not be read or written."""
