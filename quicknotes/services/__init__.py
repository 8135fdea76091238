"""Services exposed by the QuickNotes client."""
