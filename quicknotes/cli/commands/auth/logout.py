"""Logout command for the QuickNotes CLI."""

import os

import typer
from rich.console import Console

from quicknotes.cli.utils import auth

app = typer.Typer(help="Logout from QuickNotes")
console = Console()


@app.callback(invoke_without_command=True)
def main(
    remove_all: bool = typer.Option(
        False, help="Also forget the stored password and configuration"
    ),
):
    """Forget the saved session."""
    try:
        email = auth.load_session().get("email")
        if os.path.exists(auth.session_path):
            os.remove(auth.session_path)

        if remove_all:
            auth.forget_password(email)
            if os.path.exists(auth.config_path):
                os.remove(auth.config_path)
            console.print("Removed all configuration files")

        console.print("[green]Logged out successfully![/green]")
    except OSError as exc:
        console.print(
            f"[bold red]Error:[/bold red] Could not completely remove session data: {exc}"
        )
        raise typer.Exit(1) from exc
