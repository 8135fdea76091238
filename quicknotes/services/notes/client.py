"""
HTTP client for the notes API.

``RemoteNoteService`` maps 1:1 onto the REST endpoints and returns typed
``RawNote`` models. It is stateless apart from the shared ``SyncSession``,
whose bearer credential is read before every call.
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import ExitStack
from typing import Dict, List, Optional, Tuple

import requests
from pydantic import ValidationError

from quicknotes.config import config_dir
from quicknotes.exceptions import (
    NotesAuthError,
    NotesNetworkError,
    NotesRateLimited,
    NotesServerError,
)
from quicknotes.session import SyncSession

from .domain import NoteDraft, NotePatch
from .models import LoginResponse, RawNote

LOGGER = logging.getLogger(__name__)


# ------------------------------- Transport -----------------------------------


class _HttpTransport:
    """
    Minimal HTTP transport:
      - JSON or multipart bodies
      - Status codes mapped onto the notes error taxonomy
      - Bounded debug dumps (QUICKNOTES_DEBUG_MAX_BYTES)
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session,
        *,
        timeout: Optional[float] = None,
        debug: bool = False,
    ):
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._timeout = timeout
        self._debug = debug or bool(os.getenv("QUICKNOTES_DEBUG"))
        LOGGER.debug("Initialized _HttpTransport with base_url: %s", self._base_url)

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict] = None,
        form: Optional[List[Tuple[str, str]]] = None,
        files: Optional[Dict[str, object]] = None,
    ):
        url = f"{self._base_url}{path}"
        LOGGER.info("%s %s", method, url)
        kwargs: Dict[str, object] = {"headers": headers or {}}
        if params:
            kwargs["params"] = params
        if json_body is not None:
            kwargs["json"] = json_body
        if form is not None:
            kwargs["data"] = form
        if files:
            kwargs["files"] = files
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        try:
            resp = self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            LOGGER.warning("%s %s failed: %s", method, url, exc)
            raise NotesNetworkError(f"Network error: {exc}") from exc

        code = getattr(resp, "status_code", 0)
        LOGGER.debug("%s %s returned status %d", method, url, code)
        if code >= 400:
            self._dump_http_debug(method, url, json_body or form, resp)
            self._raise_for_status(method, url, resp)
        if code == 204 or not getattr(resp, "content", b""):
            return None
        try:
            return resp.json()
        except ValueError:
            self._dump_http_debug(method, url, json_body or form, resp)
            LOGGER.error("Failed to parse JSON response from %s", url)
            raise NotesServerError(
                "Invalid JSON response",
                status_code=code,
                payload=getattr(resp, "text", None),
            )

    @staticmethod
    def _raise_for_status(method: str, url: str, resp) -> None:
        code = resp.status_code
        try:
            body = resp.json()
        except ValueError:
            body = getattr(resp, "text", None)
        message = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
        if code == 401:
            LOGGER.error("%s %s failed with auth error: %d", method, url, code)
            raise NotesAuthError(message or "Session expired. Please log in again.")
        if code == 429:
            retry_after = None
            hdr = resp.headers.get("Retry-After") if resp.headers else None
            if hdr:
                try:
                    retry_after = float(hdr)
                except (TypeError, ValueError):
                    retry_after = None
            LOGGER.warning("%s %s was rate-limited. Retry after: %s", method, url, retry_after)
            raise NotesRateLimited(message or "HTTP 429: rate limited", retry_after)
        LOGGER.error("%s %s failed with code %d", method, url, code)
        raise NotesServerError(message or f"HTTP {code}", status_code=code, payload=body)

    def _dump_http_debug(self, method: str, url: str, payload, resp) -> None:
        if not self._debug:
            return
        ts = time.strftime("%Y%m%d-%H%M%S")
        out_dir = os.path.join(config_dir(), "debug")
        op = method.lower()
        try:
            os.makedirs(out_dir, exist_ok=True)
            with open(
                os.path.join(out_dir, f"{ts}_{op}_http_request.json"), "w", encoding="utf-8"
            ) as f:
                json.dump({"url": url, "payload": payload}, f, ensure_ascii=False, indent=2, default=str)
            body_text = getattr(resp, "text", None) or ""
            max_bytes = int(os.getenv("QUICKNOTES_DEBUG_MAX_BYTES", "524288"))
            if len(body_text) > max_bytes:
                body_text = body_text[:max_bytes] + "\n[truncated]\n"
            with open(
                os.path.join(out_dir, f"{ts}_{op}_http_response.txt"), "w", encoding="utf-8"
            ) as f:
                f.write(f"status={resp.status_code}\nurl={url}\n\n{body_text}")
        except OSError as exc:
            LOGGER.debug("notes.http.debug_dump_fail %s", exc)


# ------------------------------ Remote service -------------------------------


class RemoteNoteService:
    """
    Notes API endpoints:
      - GET    /notes?showArchived=
      - POST   /notes
      - PUT    /notes/{id}
      - PUT    /notes/{id}/archive | /restore
      - DELETE /notes/{id} | /notes/{id}/permanently
      - POST   /auth/login
    """

    def __init__(
        self,
        base_url: str,
        http: requests.Session,
        sync_session: SyncSession,
        *,
        timeout: Optional[float] = None,
        debug: bool = False,
    ):
        self._http = _HttpTransport(base_url, http, timeout=timeout, debug=debug)
        self._sync_session = sync_session

    def _auth_headers(self) -> Dict[str, str]:
        headers = self._sync_session.auth_headers()
        if not headers:
            raise NotesAuthError("No active session. Please log in.")
        return headers

    @staticmethod
    def _parse_note(data, op: str) -> RawNote:
        try:
            return RawNote.model_validate(data)
        except ValidationError as exc:
            LOGGER.error("%s response validation failed: %s", op, exc)
            raise NotesServerError(f"{op} response validation failed", payload=data)

    # ----- Auth -----

    def login(self, email: str, password: str) -> str:
        """Exchange credentials for a bearer token."""
        try:
            data = self._http.request(
                "POST", "/auth/login", json_body={"email": email, "password": password}
            )
        except NotesServerError as exc:
            if exc.status_code in (400, 403, 404):
                raise NotesAuthError("Invalid email or password") from exc
            raise
        try:
            return LoginResponse.model_validate(data).token
        except ValidationError:
            raise NotesServerError("Login response carried no token", payload=data)

    # ----- Notes -----

    def list(self, archived: bool) -> List[RawNote]:
        data = self._http.request(
            "GET",
            "/notes",
            headers=self._auth_headers(),
            params={"showArchived": "true" if archived else "false"},
        )
        if data is None:
            return []
        if not isinstance(data, list):
            raise NotesServerError("Expected a list of notes", payload=data)
        notes = [self._parse_note(item, "notes.list") for item in data]
        LOGGER.info("Listed %d notes (archived=%s)", len(notes), archived)
        return notes

    def create(self, draft: NoteDraft) -> RawNote:
        form = [("title", draft.title), ("content", draft.content)]
        form.extend(("tags", tag) for tag in draft.tags)
        with ExitStack() as stack:
            files = None
            if draft.media_file:
                files = {"media": stack.enter_context(open(draft.media_file, "rb"))}
            data = self._http.request(
                "POST", "/notes", headers=self._auth_headers(), form=form, files=files
            )
        return self._parse_note(data, "notes.create")

    def update(self, server_id: str, patch: NotePatch) -> RawNote:
        headers = self._auth_headers()
        if not patch.is_form:
            data = self._http.request(
                "PUT",
                f"/notes/{server_id}",
                headers=headers,
                json_body={"isPinned": bool(patch.is_pinned)},
            )
            return self._parse_note(data, "notes.update")

        form: List[Tuple[str, str]] = []
        if patch.title is not None:
            form.append(("title", patch.title))
        if patch.content is not None:
            form.append(("content", patch.content))
        for tag in patch.tags or ():
            form.append(("tags", tag))
        if patch.is_pinned is not None:
            form.append(("isPinned", "true" if patch.is_pinned else "false"))
        if patch.remove_media:
            form.append(("removeMedia", "true"))
        with ExitStack() as stack:
            files = None
            if patch.media_file:
                files = {"media": stack.enter_context(open(patch.media_file, "rb"))}
            data = self._http.request(
                "PUT", f"/notes/{server_id}", headers=headers, form=form, files=files
            )
        return self._parse_note(data, "notes.update")

    def set_archived(self, server_id: str) -> Optional[RawNote]:
        data = self._http.request(
            "PUT", f"/notes/{server_id}/archive", headers=self._auth_headers(), json_body={}
        )
        return self._optional_note(data, "notes.archive")

    def restore(self, server_id: str) -> Optional[RawNote]:
        data = self._http.request(
            "PUT", f"/notes/{server_id}/restore", headers=self._auth_headers(), json_body={}
        )
        return self._optional_note(data, "notes.restore")

    def delete(self, server_id: str) -> None:
        self._http.request("DELETE", f"/notes/{server_id}", headers=self._auth_headers())

    def delete_permanently(self, server_id: str) -> None:
        self._http.request(
            "DELETE", f"/notes/{server_id}/permanently", headers=self._auth_headers()
        )

    def _optional_note(self, data, op: str) -> Optional[RawNote]:
        # Some deployments answer archive/restore with a message envelope
        if isinstance(data, dict) and ("id" in data or "_id" in data):
            return self._parse_note(data, op)
        if isinstance(data, dict) and isinstance(data.get("note"), dict):
            return self._parse_note(data["note"], op)
        return None
