"""Login command for the QuickNotes CLI."""

from typing import Optional

import typer
from rich.console import Console

from quicknotes.cli.utils import auth

app = typer.Typer(help="Login to QuickNotes")
console = Console()


@app.callback(invoke_without_command=True)
def main(
    email: Optional[str] = typer.Option(None, help="Account email"),
    password: Optional[str] = typer.Option(None, help="Account password"),
    api_url: Optional[str] = typer.Option(None, help="Base URL of the notes API"),
    save_config: bool = typer.Option(
        False, help="Save email and API URL to the config file"
    ),
):
    """Login to QuickNotes."""
    auth.login(email, password, api_url)

    if save_config:
        config = auth.load_config()
        if email:
            config["email"] = email
        if api_url:
            config["api_url"] = api_url
        auth.save_config(config)

    console.print("[green]Login successful![/green]")
