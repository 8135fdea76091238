"""Status command for the QuickNotes CLI."""

import typer
from rich.console import Console

from quicknotes.cli.utils import auth

app = typer.Typer(help="Check authentication status")
console = Console()


@app.callback(invoke_without_command=True)
def main():
    """Check authentication status."""
    session_data = auth.load_session()
    if not session_data.get("token"):
        console.print("[yellow]Not logged in[/yellow]")
        return
    email = session_data.get("email") or "unknown user"
    console.print(f"[green]Logged in as:[/green] [bold]{email}[/bold]")
