"""List command for notes."""

import typer
from rich.console import Console

from quicknotes.cli.utils import auth
from quicknotes.cli.utils.render import notes_table
from quicknotes.services.notes import SortOrder, clamp_page, page_count

app = typer.Typer(help="List notes")
console = Console()


@app.callback(invoke_without_command=True)
def main(
    archived: bool = typer.Option(False, "--archived", help="Show archived notes"),
    search: str = typer.Option("", "--search", "-s", help="Filter by title, content or tag"),
    sort: SortOrder = typer.Option(SortOrder.NEWEST, help="Creation date order"),
    page: int = typer.Option(1, help="Page number"),
):
    """List notes, falling back to the local copy when offline."""
    api = auth.build_service()
    result = api.notes.fetch(archived=archived, sort_order=sort)
    if result.redirect_to_login and not result.notes:
        console.print("Run [bold]quicknotes auth login[/bold] to sign in.")
        raise typer.Exit(1)

    total = api.notes.count(search)
    if total == 0:
        console.print("No notes found")
        return
    total_pages = page_count(total, api.notes.page_size)
    current = clamp_page(page, total, api.notes.page_size)
    notes = api.notes.view(search_term=search, page=current)

    title = "Archived notes" if archived else "Notes"
    if result.stale:
        title += " (cached)"
    console.print(notes_table(notes, title=title))
    console.print(f"Page {current} of {total_pages}")
