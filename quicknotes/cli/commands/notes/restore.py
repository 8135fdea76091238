"""Restore command for notes."""

import typer

from quicknotes.cli.utils.render import finish, open_view

app = typer.Typer(help="Restore an archived note")


@app.callback(invoke_without_command=True)
def main(note_id: str = typer.Argument(..., help="ID of the archived note")):
    """Bring a note back from the archive."""
    api = open_view(archived=True)
    finish(api.notes.restore(note_id))
