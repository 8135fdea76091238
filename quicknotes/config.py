"""
Client configuration.

Every field has a usable default; ``ClientConfig.from_env()`` overlays the
``QUICKNOTES_*`` environment variables so scripts and the CLI can be tuned
without code changes.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_PAGE_SIZE = 5


def config_dir() -> str:
    """Directory holding session, config, replica and debug files."""
    return os.getenv("QUICKNOTES_CONFIG_DIR") or os.path.expanduser(
        "~/.config/quicknotes"
    )


def _env_flag(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ClientConfig:
    # Base URL of the notes API, without trailing slash
    api_url: str = DEFAULT_API_URL

    # Seconds; None leaves the transport default in place
    timeout: Optional[float] = None

    # Notes per page in list views
    page_size: int = DEFAULT_PAGE_SIZE

    # SQLAlchemy URL of the local replica; None means a SQLite file in config_dir()
    replica_url: Optional[str] = None

    # Dump failing HTTP exchanges to <config_dir>/debug
    debug: bool = False

    def resolved_replica_url(self) -> str:
        if self.replica_url:
            return self.replica_url
        return "sqlite:///" + os.path.join(config_dir(), "replica.db")

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        values = {}
        if os.getenv("QUICKNOTES_API_URL"):
            values["api_url"] = os.environ["QUICKNOTES_API_URL"].rstrip("/")
        if os.getenv("QUICKNOTES_TIMEOUT"):
            try:
                values["timeout"] = float(os.environ["QUICKNOTES_TIMEOUT"])
            except ValueError:
                LOGGER.warning(
                    "Ignoring invalid QUICKNOTES_TIMEOUT=%r",
                    os.environ["QUICKNOTES_TIMEOUT"],
                )
        if os.getenv("QUICKNOTES_PAGE_SIZE"):
            try:
                values["page_size"] = max(1, int(os.environ["QUICKNOTES_PAGE_SIZE"]))
            except ValueError:
                LOGGER.warning(
                    "Ignoring invalid QUICKNOTES_PAGE_SIZE=%r",
                    os.environ["QUICKNOTES_PAGE_SIZE"],
                )
        if os.getenv("QUICKNOTES_REPLICA_URL"):
            values["replica_url"] = os.environ["QUICKNOTES_REPLICA_URL"]
        if os.getenv("QUICKNOTES_DEBUG"):
            values["debug"] = _env_flag(os.environ["QUICKNOTES_DEBUG"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return dataclasses.replace(cls(), **values)
