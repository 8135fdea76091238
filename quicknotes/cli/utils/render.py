"""Helpers for printing notes and mutation outcomes."""

from typing import Iterable, Optional

import typer
from rich.console import Console
from rich.table import Table

from quicknotes import QuickNotesService
from quicknotes.cli.utils import auth
from quicknotes.services.notes import MutationResult, Note

console = Console()


def notes_table(notes: Iterable[Note], title: Optional[str] = None) -> Table:
    table = Table("", "ID", "Title", "Tags", "Media", "Created", title=title)
    for note in notes:
        table.add_row(
            "📌" if note.is_pinned else "",
            note.server_id or "(pending)",
            note.title,
            ", ".join(note.tags),
            note.media_kind.value if note.media_reference else "",
            note.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def open_view(archived: bool, api_url: Optional[str] = None) -> QuickNotesService:
    """Service whose sync engine holds the requested partition."""
    api = auth.build_service(api_url)
    result = api.notes.fetch(archived=archived)
    if result.redirect_to_login:
        console.print("Run [bold]quicknotes auth login[/bold] to sign in.")
        raise typer.Exit(1)
    return api


def finish(result: MutationResult) -> None:
    """Exit non-zero when a mutation did not stick."""
    if result.ok:
        return
    if result.redirect_to_login:
        console.print("Run [bold]quicknotes auth login[/bold] to sign in.")
    raise typer.Exit(1)
