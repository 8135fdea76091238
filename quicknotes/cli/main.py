#!/usr/bin/env python
"""Command line interface for QuickNotes."""

import logging

import typer
from rich.logging import RichHandler
from rich.traceback import install

from quicknotes.cli.commands import auth, notes

app = typer.Typer(help="Command Line Interface for QuickNotes")

# Add command groups
app.add_typer(auth.app, name="auth")
app.add_typer(notes.app, name="notes")


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Manage your QuickNotes from the terminal, online or offline."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


def main():
    """Main entry point for the CLI."""
    install(show_locals=False)
    app()


if __name__ == "__main__":
    main()
