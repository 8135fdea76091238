"""Edit command for notes."""

from typing import Optional

import typer

from quicknotes.cli.utils.render import finish, open_view
from quicknotes.services.notes import parse_tag_input

app = typer.Typer(help="Edit a note")


@app.callback(invoke_without_command=True)
def main(
    note_id: str = typer.Argument(..., help="ID of the note"),
    title: Optional[str] = typer.Option(None, help="New title"),
    content: Optional[str] = typer.Option(None, help="New content (HTML)"),
    tags: Optional[str] = typer.Option(None, help="Comma separated tags"),
    media: Optional[str] = typer.Option(None, help="Replace the attachment"),
    remove_media: bool = typer.Option(False, help="Drop the attachment"),
    archived: bool = typer.Option(False, "--archived", help="The note is archived"),
):
    """Edit a note."""
    api = open_view(archived)
    finish(
        api.notes.edit(
            note_id,
            title=title,
            content=content,
            tags=parse_tag_input(tags) if tags is not None else None,
            media_file=media,
            remove_media=remove_media,
        )
    )
