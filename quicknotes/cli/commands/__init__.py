"""Command modules for the QuickNotes CLI."""

from quicknotes.cli.commands import auth, notes

__all__ = ["auth", "notes"]
