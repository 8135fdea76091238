"""Delete command for notes."""

import typer
from rich.console import Console

from quicknotes.cli.utils.render import finish, open_view

app = typer.Typer(help="Delete a note")
console = Console()


@app.callback(invoke_without_command=True)
def main(
    note_id: str = typer.Argument(..., help="ID of the note to delete"),
    permanent: bool = typer.Option(
        False, "--permanent", help="Delete an archived note for good"
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Delete without confirmation"
    ),
):
    """Delete a note."""
    if not force:
        confirmed = typer.confirm(f"Are you sure you want to delete note {note_id}?")
        if not confirmed:
            console.print("Deletion cancelled")
            return

    if permanent:
        api = open_view(archived=True)
        finish(api.notes.delete_permanently(note_id))
    else:
        api = open_view(archived=False)
        finish(api.notes.delete(note_id))
