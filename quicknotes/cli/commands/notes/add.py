"""Add command for notes."""

from typing import Optional

import typer

from quicknotes.cli.utils import auth
from quicknotes.cli.utils.render import finish
from quicknotes.services.notes import parse_tag_input

app = typer.Typer(help="Create a note")


@app.callback(invoke_without_command=True)
def main(
    title: str = typer.Argument(..., help="Note title"),
    content: str = typer.Argument(..., help="Note content (HTML)"),
    tags: Optional[str] = typer.Option(None, help="Comma separated tags"),
    media: Optional[str] = typer.Option(None, help="Image, video or document to attach"),
):
    """Create a note."""
    api = auth.build_service()
    finish(api.notes.create(title, content, parse_tag_input(tags), media))
