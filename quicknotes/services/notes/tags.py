"""
Normalization of the ``tags`` field.

The API stores tags as an array, but depending on how a note was written the
field can come back as a JSON array literal, a JSON string holding such a
literal, or several layers of that. ``decode`` peels the layers until it
reaches a real sequence and always returns a flat list of trimmed, non-empty
strings. It never raises.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from quicknotes.exceptions import TagDecodeError

LOGGER = logging.getLogger(__name__)

# Upper bound on unwrap passes; real payloads need at most two or three
MAX_DECODE_PASSES = 16


def _is_array_literal(value: str) -> bool:
    # An opening bracket without its closing one is a truncated literal, not a tag
    return value.startswith("[")


def _is_quoted_literal(value: str) -> bool:
    return len(value) >= 2 and value.startswith('"') and value.endswith('"')


def _looks_encoded(value: Any) -> bool:
    return isinstance(value, str) and (
        _is_array_literal(value) or _is_quoted_literal(value)
    )


def _parse_literal(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError as exc:
        if _is_quoted_literal(value):
            # A quoted literal whose inner quotes were never escaped
            return value[1:-1]
        raise TagDecodeError(f"malformed tag literal: {value[:80]!r}") from exc


def _string_form(value: Any) -> str:
    """Text of a decoded JSON element as the web client displays it."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        # Nested arrays flatten to comma separated text; null members are blank
        return ",".join("" if v is None else _string_form(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _unwrap(raw: Any, max_passes: int) -> Optional[Any]:
    current = raw
    passes = 0
    while _looks_encoded(current):
        if passes >= max_passes:
            LOGGER.warning(
                "notes.tags.pass_cap reached after %d passes; dropping tags", passes
            )
            return []
        passes += 1
        parsed = _parse_literal(current)
        if isinstance(parsed, list):
            return parsed
        if _looks_encoded(parsed):
            current = parsed
            continue
        LOGGER.debug("notes.tags.scalar_literal passes=%d", passes)
        return [_string_form(parsed)]
    return current


def decode(raw: Any, *, max_passes: int = MAX_DECODE_PASSES) -> List[str]:
    """Return ``raw`` as a flat list of trimmed, non-empty tag strings."""
    try:
        value = _unwrap(raw, max_passes)
    except TagDecodeError as exc:
        LOGGER.warning("notes.tags.decode_fail %s", exc)
        value = []

    if isinstance(value, tuple):
        value = list(value)
    if not isinstance(value, list):
        if isinstance(value, str) and value.strip():
            value = [value.strip()]
        else:
            value = []

    out: List[str] = []
    for item in value:
        text = _string_form(item).strip()
        if text:
            out.append(text)
    return out


def parse_tag_input(text: Optional[str]) -> List[str]:
    """Split comma separated user input into tags."""
    if not text:
        return []
    return [part.strip() for part in text.split(",") if part.strip()]
