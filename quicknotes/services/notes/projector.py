"""
Pure functions turning a set of notes into what a list view shows.

Ordering: pinned notes always come first, then ``created_at`` in the
requested direction. Pagination is 1-based and never clamps; callers use
``clamp_page`` when they need a valid page number.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from .domain import Note, SortOrder, ViewParams


def matches(note: Note, search_term: str) -> bool:
    if not search_term:
        return True
    needle = search_term.lower()
    if needle in note.title.lower() or needle in note.content.lower():
        return True
    return any(needle in tag.lower() for tag in note.tags)


def filter_notes(notes: Iterable[Note], search_term: str) -> List[Note]:
    return [n for n in notes if matches(n, search_term)]


def sort_notes(notes: Iterable[Note], sort_order: SortOrder) -> List[Note]:
    """Pinned first, then by creation time (newest or oldest first)."""
    by_date = sorted(
        notes,
        key=lambda n: n.created_at,
        reverse=SortOrder(sort_order) is SortOrder.NEWEST,
    )
    # sorted() is stable, so the date order survives inside each pin group
    return sorted(by_date, key=lambda n: not n.is_pinned)


def paginate(notes: Sequence[Note], page: int, page_size: int) -> List[Note]:
    if page < 1 or page_size < 1:
        return []
    start = (page - 1) * page_size
    return list(notes[start : start + page_size])


def page_count(total: int, page_size: int) -> int:
    if page_size < 1:
        return 0
    return math.ceil(total / page_size)


def clamp_page(page: int, total: int, page_size: int) -> int:
    last = max(1, page_count(total, page_size))
    return min(max(1, page), last)


def project(notes: Iterable[Note], params: ViewParams) -> List[Note]:
    """Filter, sort and slice ``notes`` for display."""
    visible = sort_notes(filter_notes(notes, params.search_term), params.sort_order)
    return paginate(visible, params.page, params.page_size)
