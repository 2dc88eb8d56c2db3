# tasks/tests/test_stores.py
"""
Task Store Adapter Tests
========================

1. LocalStore - device list semantics (prepend, replace, filter)
2. RemoteStore - owner scoping, ordering, bulk insert, error wrapping
3. store_for - backend selection from the identity
"""

from __future__ import annotations

from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase

from api.exceptions import PersistenceError
from tasks.models import Task
from tasks.stores import LocalStore, RemoteStore, store_for
from users.device import TASKS_KEY, DeviceStorage
from users.session import ANONYMOUS, AUTHENTICATED, GUEST, Identity

from .factories import make_item

User = get_user_model()


# ===========================================================================
# LOCAL STORE
# ===========================================================================


class LocalStoreTest(SimpleTestCase):

    def setUp(self) -> None:
        self.backend = {}
        self.store = LocalStore(DeviceStorage(self.backend))

    def test_empty_device(self) -> None:
        self.assertEqual(self.store.load(), [])
        self.assertFalse(self.store.has_tasks())

    def test_create_prepends(self) -> None:
        first, second = make_item("first"), make_item("second")
        self.store.create(first)
        self.store.create(second)

        self.assertEqual([t.text for t in self.store.load()], ["second", "first"])
        self.assertEqual(len(self.backend[TASKS_KEY]), 2)

    def test_update_replaces_in_place(self) -> None:
        a, b = make_item("a"), make_item("b")
        self.store.save_all([a, b])

        self.store.update(a.mark_completed())

        loaded = self.store.load()
        self.assertEqual([t.id for t in loaded], [a.id, b.id])
        self.assertTrue(loaded[0].completed)

    def test_delete_removes_only_that_task(self) -> None:
        a, b = make_item("a"), make_item("b")
        self.store.save_all([a, b])

        self.store.delete(a.id)

        self.assertEqual(self.store.load(), [b])
        self.assertIsNone(self.store.get(a.id))

    def test_saved_empty_list_still_counts_as_saved(self) -> None:
        self.store.save_all([])
        self.assertTrue(self.store.has_tasks())

    def test_unreadable_entries_are_skipped(self) -> None:
        good = make_item("good")
        self.backend[TASKS_KEY] = [{"text": "no id"}, good.to_storage(), {"id": "not-a-uuid"}]

        self.assertEqual(self.store.load(), [good])


# ===========================================================================
# REMOTE STORE
# ===========================================================================


class RemoteStoreTest(TestCase):

    def setUp(self) -> None:
        self.user = User.objects.create_user(email="owner@example.com", password="secret123")
        self.other = User.objects.create_user(email="other@example.com", password="secret123")
        self.store = RemoteStore(self.user.pk)

    def test_create_and_load_newest_first(self) -> None:
        old, new = make_item("old", minutes=0), make_item("new", minutes=5)
        self.store.create(old)
        self.store.create(new)

        self.assertEqual([t.text for t in self.store.load()], ["new", "old"])
        self.assertEqual(Task.objects.filter(user=self.user).count(), 2)

    def test_round_trip_through_row(self) -> None:
        task = make_item(start_time="08:00", category="personal", priority="high")
        self.store.create(task)
        self.assertEqual(self.store.get(task.id), task)

    def test_other_users_rows_are_invisible(self) -> None:
        task = make_item("mine")
        RemoteStore(self.other.pk).create(task)

        self.assertEqual(self.store.load(), [])
        self.assertIsNone(self.store.get(task.id))

        # Updates and deletes through the wrong owner do nothing.
        self.store.update(task.mark_completed())
        self.store.delete(task.id)
        row = Task.objects.get(id=task.id)
        self.assertFalse(row.completed)

    def test_update_and_delete(self) -> None:
        task = make_item()
        self.store.create(task)

        self.store.update(task.mark_completed())
        self.assertTrue(self.store.get(task.id).completed)

        self.store.delete(task.id)
        self.assertFalse(Task.objects.filter(id=task.id).exists())

    def test_bulk_create_skips_existing_ids(self) -> None:
        a, b = make_item("a"), make_item("b", minutes=1)
        self.store.create(a)

        inserted = self.store.bulk_create([a, b])

        self.assertEqual(inserted, 1)
        self.assertEqual(Task.objects.filter(user=self.user).count(), 2)

    def test_bulk_create_copies_ids_owned_by_another_user(self) -> None:
        shared = make_item("shared")
        RemoteStore(self.other.pk).create(shared)

        inserted = self.store.bulk_create([shared])

        self.assertEqual(inserted, 1)
        mine = self.store.load()
        self.assertEqual([t.text for t in mine], ["shared"])
        self.assertNotEqual(mine[0].id, shared.id)
        # The other user's row is untouched.
        self.assertEqual(Task.objects.get(id=shared.id).user, self.other)

    def test_bulk_create_empty_is_noop(self) -> None:
        self.assertEqual(self.store.bulk_create([]), 0)

    def test_database_errors_become_persistence_errors(self) -> None:
        with patch("tasks.stores.Task.objects.create", side_effect=DatabaseError("down")):
            with self.assertRaises(PersistenceError) as ctx:
                self.store.create(make_item())
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(ctx.exception.details, "down")


class StoreForTest(SimpleTestCase):

    def test_backend_follows_identity(self) -> None:
        device = DeviceStorage({})

        self.assertIsInstance(store_for(Identity(AUTHENTICATED, 7), device), RemoteStore)
        self.assertIsInstance(store_for(Identity(GUEST), device), LocalStore)
        self.assertIsInstance(store_for(Identity(ANONYMOUS), device), LocalStore)
        self.assertEqual(store_for(Identity(AUTHENTICATED, 7), device).user_id, 7)
