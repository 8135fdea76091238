"""Tests for the sync coordinator."""

import json
import threading
import time
import unittest
from unittest.mock import MagicMock

import requests

from fakes import BrokenReplica, FakeRemote, raw_note

from quicknotes.exceptions import (
    NoteNotFound,
    NotesAuthError,
    NotesNetworkError,
    NotesServerError,
    NotesValidationError,
)
from quicknotes.services.notes import (
    EMPTY_CONTENT,
    LocalReplicaStore,
    MutationKind,
    RemoteNoteService,
    SortOrder,
    SyncCoordinator,
)
from quicknotes.session import SyncSession


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


class CoordinatorTestCase(unittest.TestCase):
    def setUp(self):
        self.remote = FakeRemote(
            [
                raw_note("a", 0),
                raw_note("b", 10, tags='["work"]'),
                raw_note("c", 20, isPinned=True),
                raw_note("z", 5, isArchived=True),
            ]
        )
        self.replica = LocalReplicaStore("sqlite://")
        self.session = SyncSession("tok")
        self.coordinator = self.make_coordinator(self.replica)

    def tearDown(self):
        self.replica.close()

    def make_coordinator(self, replica):
        coordinator = SyncCoordinator(self.remote, replica, self.session, page_size=5)
        self.notifications = []
        self.redirects = []
        coordinator.on_notify(self.notifications.append)
        coordinator.on_auth_required(lambda: self.redirects.append(True))
        return coordinator

    def ids(self, notes):
        return [n.server_id for n in notes]

    def messages(self):
        return [n.message for n in self.notifications]

    def calls(self, op):
        return [c for c in self.remote.calls if c[0] == op]


class FetchTest(CoordinatorTestCase):
    def test_fetch_mirrors_server_into_replica(self):
        result = self.coordinator.fetch()

        self.assertFalse(result.stale)
        self.assertIsNone(result.error)
        self.assertEqual(self.ids(result.notes), ["c", "b", "a"])
        self.assertEqual(self.ids(self.coordinator.notes), ["c", "b", "a"])
        self.assertEqual(
            sorted(self.ids(self.replica.query_by_archived_flag(False))), ["a", "b", "c"]
        )
        self.assertEqual(self.coordinator.get("b").tags, ("work",))
        self.assertIn("Notes synced from server!", self.messages())

    def test_archived_fetch_keeps_active_partition(self):
        self.coordinator.fetch()
        result = self.coordinator.fetch(archived=True)

        self.assertTrue(self.coordinator.archived)
        self.assertEqual(self.ids(result.notes), ["z"])
        self.assertEqual(self.replica.count(), 4)

    def test_auth_error_falls_back_and_clears_credential(self):
        self.coordinator.fetch()
        self.remote.fail["list"] = NotesAuthError("jwt expired")

        result = self.coordinator.fetch()

        self.assertTrue(result.stale)
        self.assertTrue(result.redirect_to_login)
        self.assertIsInstance(result.error, NotesAuthError)
        self.assertEqual(self.ids(result.notes), ["c", "b", "a"])
        self.assertIsNone(self.session.token)
        self.assertEqual(self.redirects, [True])
        self.assertIn("Session expired. Please log in again.", self.messages())

    def test_network_error_serves_cache(self):
        self.coordinator.fetch()
        self.remote.fail["list"] = NotesNetworkError("Network error: refused")

        result = self.coordinator.fetch()

        self.assertTrue(result.stale)
        self.assertFalse(result.redirect_to_login)
        self.assertEqual(result.message, "Network error: refused")
        self.assertEqual(self.ids(result.notes), ["c", "b", "a"])
        self.assertEqual(self.session.token, "tok")
        self.assertIn("Showing cached notes (offline mode)", self.messages())

    def test_server_error_serves_cache(self):
        self.coordinator.fetch()
        self.remote.fail["list"] = NotesServerError("boom", status_code=500)
        result = self.coordinator.fetch()
        self.assertTrue(result.stale)
        self.assertEqual(len(result.notes), 3)

    def test_no_token_with_cache(self):
        self.coordinator.fetch()
        self.session.clear()
        self.remote.calls.clear()

        result = self.coordinator.fetch()

        self.assertTrue(result.stale)
        self.assertFalse(result.redirect_to_login)
        self.assertEqual(len(result.notes), 3)
        self.assertEqual(self.calls("list"), [])
        self.assertIn("Showing cached notes (no token, offline mode)", self.messages())

    def test_no_token_and_empty_cache_asks_for_login(self):
        self.session.clear()
        result = self.coordinator.fetch()

        self.assertTrue(result.redirect_to_login)
        self.assertEqual(result.notes, ())
        self.assertEqual(self.redirects, [True])
        self.assertIn("No token found. Please log in.", self.messages())

    def test_unavailable_replica_yields_empty_result(self):
        coordinator = self.make_coordinator(BrokenReplica())
        self.remote.fail["list"] = NotesNetworkError("offline")

        result = coordinator.fetch()

        self.assertTrue(result.stale)
        self.assertEqual(result.notes, ())

    def test_unavailable_replica_does_not_block_sync(self):
        coordinator = self.make_coordinator(BrokenReplica())
        result = coordinator.fetch()
        self.assertFalse(result.stale)
        self.assertEqual(len(result.notes), 3)
        self.assertTrue(coordinator.toggle_pin("a").ok)

    def test_listeners_see_every_load(self):
        seen = []
        self.coordinator.subscribe(seen.append)
        self.coordinator.fetch()
        self.assertEqual(self.ids(seen[-1]), ["c", "b", "a"])


class ViewTest(CoordinatorTestCase):
    def test_pages_and_search(self):
        self.remote.notes = {
            str(i): raw_note(str(i), i, title=f"Item {i}") for i in range(12)
        }
        self.coordinator.fetch()

        self.assertEqual(self.coordinator.page_count(), 3)
        self.assertEqual(len(self.coordinator.view(page=1)), 5)
        self.assertEqual(self.ids(self.coordinator.view(page=3)), ["1", "0"])
        self.assertEqual(self.coordinator.count("item 1"), 3)
        self.assertEqual(self.coordinator.view(page=4), [])

    def test_sort_order(self):
        self.coordinator.fetch()
        self.coordinator.sort_order = SortOrder.OLDEST
        self.assertEqual(self.ids(self.coordinator.view()), ["c", "a", "b"])
        self.assertEqual(
            self.ids(self.coordinator.view(sort_order=SortOrder.NEWEST)), ["c", "b", "a"]
        )

    def test_search_matches_tags(self):
        self.coordinator.fetch()
        self.assertEqual(self.ids(self.coordinator.view("WORK")), ["b"])


class MutationTest(CoordinatorTestCase):
    def setUp(self):
        super().setUp()
        self.coordinator.fetch()
        self.notifications.clear()
        self.remote.calls.clear()

    def test_pin(self):
        result = self.coordinator.toggle_pin("a")

        self.assertTrue(result.ok)
        self.assertTrue(self.coordinator.get("a").is_pinned)
        self.assertTrue(self.replica.get("a").is_pinned)
        self.assertEqual(self.ids(self.coordinator.notes), ["c", "a", "b"])
        self.assertEqual(self.messages(), ["Note pinned successfully!"])

    def test_unpin(self):
        self.assertTrue(self.coordinator.toggle_pin("c").ok)
        self.assertFalse(self.coordinator.get("c").is_pinned)
        self.assertEqual(self.messages(), ["Note unpinned successfully!"])

    def test_failed_pin_rolls_back_only_that_note(self):
        before = self.coordinator.notes
        self.remote.fail["update"] = NotesNetworkError("offline")

        result = self.coordinator.toggle_pin("a")

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, NotesNetworkError)
        self.assertEqual(self.coordinator.notes, before)
        self.assertFalse(self.replica.get("a").is_pinned)
        self.assertEqual(self.messages(), ["Failed to pin note. Please try again."])

    def test_optimistic_state_is_visible_before_confirmation(self):
        seen = []
        self.coordinator.subscribe(seen.append)
        self.remote.fail["update"] = NotesServerError("nope", status_code=500)

        self.coordinator.toggle_pin("a")

        optimistic = {n.server_id: n for n in seen[0]}
        self.assertTrue(optimistic["a"].is_pinned)
        self.assertFalse(self.coordinator.get("a").is_pinned)

    def test_auth_error_on_mutation_redirects(self):
        self.remote.fail["update"] = NotesAuthError("expired")

        result = self.coordinator.toggle_pin("a")

        self.assertTrue(result.redirect_to_login)
        self.assertIsNone(self.session.token)
        self.assertFalse(self.coordinator.get("a").is_pinned)
        self.assertEqual(self.redirects, [True])

    def test_edit(self):
        result = self.coordinator.edit("a", title="Renamed", tags=["x", " y "])

        self.assertTrue(result.ok)
        note = self.coordinator.get("a")
        self.assertEqual(note.title, "Renamed")
        self.assertEqual(note.tags, ("x", "y"))
        self.assertEqual(self.replica.get("a").title, "Renamed")
        _, _, patch = self.calls("update")[0]
        self.assertTrue(patch.is_form)

    def test_edit_rejects_blank_fields_without_network(self):
        result = self.coordinator.edit("a", title="   ")
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, NotesValidationError)

        result = self.coordinator.edit("a", content=EMPTY_CONTENT)
        self.assertIsInstance(result.error, NotesValidationError)

        self.assertEqual(self.calls("update"), [])
        self.assertEqual(self.coordinator.get("a").title, "Note a")

    def test_edit_failure_restores_note(self):
        self.remote.fail["update"] = NotesServerError("bad", status_code=500)
        result = self.coordinator.edit("a", title="Renamed")
        self.assertFalse(result.ok)
        self.assertEqual(self.coordinator.get("a").title, "Note a")
        self.assertEqual(self.messages(), ["Failed to update note."])

    def test_archive(self):
        result = self.coordinator.archive("a")

        self.assertTrue(result.ok)
        self.assertIsNone(self.coordinator.get("a"))
        self.assertTrue(self.replica.get("a").is_archived)
        self.assertEqual(self.messages(), ["Note archived successfully!"])

        archived = self.coordinator.fetch(archived=True)
        self.assertEqual(sorted(self.ids(archived.notes)), ["a", "z"])

    def test_archive_failure_puts_note_back(self):
        self.remote.fail["set_archived"] = NotesNetworkError("offline")
        result = self.coordinator.archive("a")
        self.assertFalse(result.ok)
        self.assertIsNotNone(self.coordinator.get("a"))
        self.assertFalse(self.replica.get("a").is_archived)

    def test_restore(self):
        self.coordinator.fetch(archived=True)
        result = self.coordinator.restore("z")

        self.assertTrue(result.ok)
        self.assertIsNone(self.coordinator.get("z"))
        self.assertFalse(self.replica.get("z").is_archived)

    def test_delete(self):
        result = self.coordinator.delete("b")

        self.assertTrue(result.ok)
        self.assertIsNone(self.coordinator.get("b"))
        self.assertIsNone(self.replica.get("b"))
        self.assertNotIn("b", self.remote.notes)

    def test_delete_permanently(self):
        self.coordinator.fetch(archived=True)
        result = self.coordinator.delete_permanently("z")

        self.assertTrue(result.ok)
        self.assertEqual(result.kind, MutationKind.DELETE_PERMANENTLY)
        self.assertIsNone(self.replica.get("z"))
        self.assertIn("Note permanently deleted.", self.messages())

    def test_create(self):
        seen = []
        self.coordinator.subscribe(seen.append)

        result = self.coordinator.create("Fresh", "<p>new</p>", ["idea"])

        self.assertTrue(result.ok)
        self.assertEqual(result.note.server_id, "1001")
        self.assertEqual(result.note.tags, ("idea",))
        self.assertIn(None, self.ids(seen[0]))
        self.assertNotIn(None, self.ids(self.coordinator.notes))
        self.assertEqual(len(self.coordinator.notes), 4)
        self.assertIsNotNone(self.replica.get("1001"))

    def test_failed_create_discards_placeholder(self):
        self.remote.fail["create"] = NotesServerError("bad", status_code=500)

        result = self.coordinator.create("Fresh", "<p>new</p>")

        self.assertFalse(result.ok)
        self.assertEqual(self.ids(self.coordinator.notes), ["c", "b", "a"])
        self.assertEqual(self.replica.count(), 3)
        self.assertEqual(self.messages(), ["Failed to add note."])

    def test_create_validation(self):
        result = self.coordinator.create("", "<p>body</p>")
        self.assertIsInstance(result.error, NotesValidationError)
        result = self.coordinator.create("Title", EMPTY_CONTENT)
        self.assertIsInstance(result.error, NotesValidationError)
        self.assertEqual(self.calls("create"), [])

    def test_unknown_note(self):
        result = self.coordinator.toggle_pin("missing")
        self.assertIsInstance(result.error, NoteNotFound)
        self.assertEqual(self.remote.calls, [])

    def test_no_session(self):
        self.session.clear()
        result = self.coordinator.archive("a")

        self.assertTrue(result.redirect_to_login)
        self.assertIsInstance(result.error, NotesAuthError)
        self.assertEqual(self.remote.calls, [])
        self.assertIsNotNone(self.coordinator.get("a"))


class ConcurrencyTest(CoordinatorTestCase):
    def setUp(self):
        super().setUp()
        self.coordinator.fetch()
        self.remote.calls.clear()

    def start(self, target, *args, **kwargs):
        thread = threading.Thread(target=target, args=args, kwargs=kwargs)
        thread.start()
        return thread

    def test_last_response_to_land_wins(self):
        first, second = threading.Event(), threading.Event()
        self.remote.gates["update"] = [first, second]

        t1 = self.start(self.coordinator.edit, "a", title="First")
        wait_until(lambda: len(self.calls("update")) == 1)
        t2 = self.start(self.coordinator.edit, "a", title="Second")
        wait_until(lambda: len(self.calls("update")) == 2)

        self.assertTrue(self.coordinator.is_pending("a"))
        self.assertEqual(self.coordinator.get("a").title, "Second")

        second.set()
        t2.join(5)
        self.assertEqual(self.coordinator.get("a").title, "Second")
        self.assertTrue(self.coordinator.is_pending("a"))

        first.set()
        t1.join(5)
        self.assertEqual(self.coordinator.get("a").title, "First")
        self.assertEqual(self.replica.get("a").title, "First")
        self.assertFalse(self.coordinator.is_pending("a"))

    def test_failure_on_one_note_leaves_the_other(self):
        gate_a, gate_b = threading.Event(), threading.Event()
        self.remote.gates["update"] = [gate_a, gate_b]

        t_a = self.start(self.coordinator.toggle_pin, "a")
        wait_until(lambda: len(self.calls("update")) == 1)
        t_b = self.start(self.coordinator.toggle_pin, "b")
        wait_until(lambda: len(self.calls("update")) == 2)

        gate_b.set()
        t_b.join(5)
        self.remote.fail["update"] = NotesNetworkError("offline")
        gate_a.set()
        t_a.join(5)

        self.assertFalse(self.coordinator.get("a").is_pinned)
        self.assertTrue(self.coordinator.get("b").is_pinned)
        self.assertTrue(self.replica.get("b").is_pinned)
        self.assertFalse(self.coordinator.is_pending("a"))
        self.assertFalse(self.coordinator.is_pending("b"))


class ServerAnswerTest(unittest.TestCase):
    def setUp(self):
        self.http = MagicMock()
        self.replica = LocalReplicaStore("sqlite://")
        self.session = SyncSession("tok")
        remote = RemoteNoteService("https://notes.example.com/api", self.http, self.session)
        self.coordinator = SyncCoordinator(remote, self.replica, self.session)

    def tearDown(self):
        self.replica.close()

    def test_created_note_without_id_rolls_back(self):
        resp = requests.Response()
        resp.status_code = 201
        resp._content = json.dumps({"_id": "", "title": "T", "content": "<p>x</p>"}).encode()
        self.http.request.return_value = resp

        result = self.coordinator.create("T", "<p>x</p>")

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, NotesServerError)
        self.assertEqual(self.coordinator.notes, ())
        self.assertEqual(self.replica.count(), 0)


if __name__ == "__main__":
    unittest.main()
