"""Example of how to use the notes sync engine."""

import argparse
import getpass
import logging

from rich import print as rprint
from rich.console import Console
from rich.traceback import install

from quicknotes import QuickNotesService
from quicknotes.exceptions import NotesAuthError

install(show_locals=True)

console = Console()


def main():
    """Main function."""
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Notes sync example.")
    parser.add_argument("--email", required=True, help="Your account email.")
    parser.add_argument(
        "--password",
        help="Your account password. If not provided, you will be prompted.",
    )
    parser.add_argument("--api-url", help="Base URL of the notes API.")
    parser.add_argument("--archived", action="store_true", help="Show archived notes.")
    parser.add_argument("--search", default="", help="Filter by title, content or tag.")
    args = parser.parse_args()

    api = QuickNotesService(api_url=args.api_url)
    password = args.password or getpass.getpass(f"Password for {args.email}: ")
    try:
        api.login(args.email, password)
    except NotesAuthError as exc:
        logging.error("Login failed: %s", exc)
        return

    notes = api.notes
    notes.on_notify(lambda n: logging.info("[%s] %s", n.level, n.message))
    result = notes.fetch(archived=args.archived)
    if result.stale:
        logging.warning("Showing cached notes: %s", result.message)

    pages = notes.page_count(args.search)
    rprint(f"{notes.count(args.search)} notes across {pages} page(s)")
    for page in range(1, pages + 1):
        console.rule(f"Page {page}")
        for note in notes.view(args.search, page=page):
            pin = "📌 " if note.is_pinned else ""
            rprint(f"{pin}[bold]{note.title}[/bold] {', '.join(note.tags)}")
            rprint(f"  id={note.server_id} created={note.created_at:%Y-%m-%d %H:%M}")


if __name__ == "__main__":
    main()
