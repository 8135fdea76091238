from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict


def _env_extra_mode(default: str = "ignore") -> str:
    """
    Determine the extra-mode from the environment.

    QUICKNOTES_WIRE_EXTRA: allow|forbid|ignore
    Convenience booleans: "true/1/on" -> forbid (strict), "false/0/off" -> ignore
    """
    raw = (os.getenv("QUICKNOTES_WIRE_EXTRA") or default).strip().lower()

    if raw in {"allow", "forbid", "ignore"}:
        return raw
    if raw in {"1", "true", "yes", "on", "strict"}:
        return "forbid"
    if raw in {"0", "false", "no", "off", "lenient"}:
        return "ignore"

    return default


_EXTRA = _env_extra_mode()


class WireModel(BaseModel):
    """
    Base for payloads received from the notes API.

    The server adds bookkeeping fields (owner, share ids, version keys) we do
    not model, so unknown keys are ignored unless QUICKNOTES_WIRE_EXTRA says
    otherwise.
    """

    model_config = ConfigDict(extra=_EXTRA, populate_by_name=True)


__all__ = ["WireModel", "_env_extra_mode"]
