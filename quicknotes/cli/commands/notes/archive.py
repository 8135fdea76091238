"""Archive command for notes."""

import typer

from quicknotes.cli.utils.render import finish, open_view

app = typer.Typer(help="Archive a note")


@app.callback(invoke_without_command=True)
def main(note_id: str = typer.Argument(..., help="ID of the note to archive")):
    """Move a note to the archive."""
    api = open_view(archived=False)
    finish(api.notes.archive(note_id))
