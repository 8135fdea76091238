"""Notes commands for the QuickNotes CLI."""

import typer

from . import add, archive, delete, edit, list_notes, pin, restore

app = typer.Typer(help="Notes commands")
app.add_typer(list_notes.app, name="list")
app.add_typer(add.app, name="add")
app.add_typer(edit.app, name="edit")
app.add_typer(pin.app, name="pin")
app.add_typer(archive.app, name="archive")
app.add_typer(restore.app, name="restore")
app.add_typer(delete.app, name="delete")
