"""Pin command for notes."""

import typer

from quicknotes.cli.utils.render import finish, open_view

app = typer.Typer(help="Pin or unpin a note")


@app.callback(invoke_without_command=True)
def main(
    note_id: str = typer.Argument(..., help="ID of the note"),
    archived: bool = typer.Option(False, "--archived", help="The note is archived"),
):
    """Toggle the pinned state of a note."""
    api = open_view(archived)
    finish(api.notes.toggle_pin(note_id))
