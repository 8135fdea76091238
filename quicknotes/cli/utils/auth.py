"""Utility functions shared by the QuickNotes CLI commands."""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
import typer
from keyring.errors import KeyringError
from rich.console import Console
from rich.panel import Panel

from quicknotes import QuickNotesService
from quicknotes.config import ClientConfig, config_dir as _config_dir
from quicknotes.exceptions import NotesAuthError, NotesError
from quicknotes.services.notes import Notification

console = Console()

KEYRING_SERVICE = "quicknotes"

# State storage
config_dir = _config_dir()
Path(config_dir).mkdir(parents=True, exist_ok=True)
session_path = os.path.join(config_dir, "session.json")
config_path = os.path.join(config_dir, "config.json")

_STYLES = {
    "success": "green",
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
}


def load_config() -> Dict[str, Any]:
    """Load configuration from file."""
    try:
        if os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as f:
                return json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        console.print(f"[yellow]Warning:[/yellow] Could not load config file: {exc}")
    return {}


def save_config(config: Dict[str, Any]) -> None:
    """Save configuration to file."""
    try:
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.chmod(config_path, 0o600)
    except OSError as exc:
        console.print(f"[yellow]Warning:[/yellow] Could not save config file: {exc}")


def load_session() -> Dict[str, str]:
    try:
        with open(session_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


def _save_session(email: Optional[str], token: Optional[str]) -> None:
    """Persist the bearer token, or forget it when ``token`` is None."""
    if token is None:
        if os.path.exists(session_path):
            os.remove(session_path)
        return
    with open(session_path, "w", encoding="utf-8") as f:
        json.dump({"email": email, "token": token}, f)
    os.chmod(session_path, 0o600)


def _password_from_keyring(email: str) -> Optional[str]:
    try:
        return keyring.get_password(KEYRING_SERVICE, email)
    except KeyringError:
        return None


def store_password(email: str, password: str) -> None:
    try:
        keyring.set_password(KEYRING_SERVICE, email, password)
    except KeyringError as exc:
        console.print(f"[yellow]Warning:[/yellow] Could not store password: {exc}")


def forget_password(email: Optional[str]) -> None:
    if not email:
        return
    try:
        if keyring.get_password(KEYRING_SERVICE, email) is not None:
            keyring.delete_password(KEYRING_SERVICE, email)
    except KeyringError:
        pass


def print_notification(notification: Notification) -> None:
    style = _STYLES.get(notification.level, "white")
    console.print(f"[{style}]{notification.message}[/{style}]")


def build_service(api_url: Optional[str] = None) -> QuickNotesService:
    """Create a QuickNotesService from saved config and session, without logging in."""
    config = load_config()
    session_data = load_session()
    api = QuickNotesService(
        config=ClientConfig.from_env(api_url=api_url or config.get("api_url")),
        token=session_data.get("token"),
    )
    email = session_data.get("email")
    api.session.subscribe(lambda token: _save_session(email, token))
    api.notes.on_notify(print_notification)
    return api


def login(
    email: Optional[str] = None,
    password: Optional[str] = None,
    api_url: Optional[str] = None,
    max_retries: int = 3,
) -> QuickNotesService:
    """Log in, prompting for missing credentials, and persist the session."""
    config = load_config()
    resolved_email = email or load_session().get("email") or config.get("email")
    if not resolved_email:
        resolved_email = typer.prompt("Email")

    api = build_service(api_url)
    failure_count = 0
    current_password = password or _password_from_keyring(resolved_email)
    while failure_count < max_retries:
        if not current_password:
            current_password = typer.prompt("Password", hide_input=True)
        try:
            token = api.login(resolved_email, current_password)
        except NotesAuthError as exc:
            failure_count += 1
            forget_password(resolved_email)
            current_password = None
            if failure_count >= max_retries:
                console.print("[bold red]Error:[/bold red] Invalid email or password")
                raise typer.Exit(1) from exc
            console.print(
                "[bold yellow]Warning:[/bold yellow] Login failed. "
                f"Attempts remaining: {max_retries - failure_count}"
            )
            continue
        except NotesError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            console.print(
                Panel(
                    "The notes API could not be reached or answered unexpectedly.\n"
                    "Check the API URL (QUICKNOTES_API_URL or --api-url) and that\n"
                    "the server is running, then try again.",
                    title="API Error",
                    border_style="red",
                )
            )
            raise typer.Exit(1) from exc

        _save_session(resolved_email, token)
        api.session.subscribe(lambda t: _save_session(resolved_email, t))
        if _password_from_keyring(resolved_email) is None:
            if typer.confirm("Save password in keyring?", default=False):
                store_password(resolved_email, current_password)
        return api

    console.print("[bold red]Error:[/bold red] Failed to authenticate")
    raise typer.Exit(1)

