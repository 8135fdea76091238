"""Public exports for the notes wire models."""

from __future__ import annotations

from .wire import LoginResponse, RawNote

__all__ = ["LoginResponse", "RawNote"]
