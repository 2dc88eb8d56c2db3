# tasks/tests/test_services.py
"""
TaskService Tests
=================

Task operations for guests (device store) and signed-in users (remote
store): XP awards, idempotent completion toggles, validation, and the
handling of remote write failures.
"""

from __future__ import annotations

import datetime
import uuid
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase

from api.exceptions import InvalidInput, PersistenceError, TaskNotFound
from progress.models import UserProgress
from progress.signals import level_up
from tasks.services import TaskService
from tasks.stores import LocalStore
from users.device import STATS_KEY, DeviceStorage
from users.session import AUTHENTICATED, GUEST, Identity

User = get_user_model()


class GuestTaskServiceTest(SimpleTestCase):
    """Device-backed service: no database needed."""

    def setUp(self) -> None:
        self.backend = {}
        self.device = DeviceStorage(self.backend)
        self.service = TaskService(Identity(GUEST), self.device)

    # -----------------------------------------------------------------------
    # Add / Edit
    # -----------------------------------------------------------------------

    def test_add_prepends_open_task(self) -> None:
        self.service.add("First", "work", "low")
        change = self.service.add("  Second  ", "Work", "HIGH")

        self.assertEqual(change.task.text, "Second")
        self.assertEqual(change.task.category, "work")
        self.assertEqual(change.task.priority, "high")
        self.assertFalse(change.task.completed)
        self.assertTrue(change.sync.ok)

        tasks, counts = self.service.list()
        self.assertEqual([t.text for t in tasks], ["Second", "First"])
        self.assertEqual(counts, {"all": 2, "ongoing": 2, "finished": 0})

    def test_add_validates_input(self) -> None:
        with self.assertRaises(InvalidInput):
            self.service.add("   ", "work", "low")
        with self.assertRaises(InvalidInput):
            self.service.add("Task", "hobbies", "low")
        with self.assertRaises(InvalidInput):
            self.service.add("Task", "work", "urgent")
        self.assertEqual(self.service.list()[0], [])

    def test_custom_category_is_accepted_once_added(self) -> None:
        self.service.progress.add_category("Fitness")
        change = self.service.add("Run", "fitness", "medium")
        self.assertEqual(change.task.category, "fitness")

    def test_edit_changes_fields(self) -> None:
        task = self.service.add("Draft", "work", "low").task

        change = self.service.edit(task.id, text="Final", priority="high", start_time="10:00")

        self.assertEqual(change.task.text, "Final")
        self.assertEqual(self.service.get(task.id).start_time, "10:00")
        self.assertEqual(self.service.get(task.id).created_at, task.created_at)

    def test_edit_rejects_completion_fields(self) -> None:
        task = self.service.add("Draft", "work", "low").task
        with self.assertRaises(InvalidInput):
            self.service.edit(task.id, completed=True)

    def test_unknown_task(self) -> None:
        with self.assertRaises(TaskNotFound):
            self.service.complete(uuid.uuid4())

    # -----------------------------------------------------------------------
    # Completion and XP
    # -----------------------------------------------------------------------

    def test_complete_awards_xp_and_persists_stats(self) -> None:
        task = self.service.add("Ship it", "work", "high").task

        change = self.service.complete(task.id)

        self.assertTrue(change.task.completed)
        self.assertIsNotNone(change.task.completed_at)
        self.assertEqual(change.stats.xp, 30)
        self.assertEqual(change.stats.streak, 1)
        self.assertEqual(self.backend[STATS_KEY]["xp"], 30)

    def test_complete_twice_awards_once(self) -> None:
        task = self.service.add("Ship it", "work", "high").task
        self.service.complete(task.id)

        change = self.service.complete(task.id)

        self.assertFalse(change.changed)
        self.assertEqual(change.stats.xp, 30)

    def test_uncomplete_takes_xp_back(self) -> None:
        task = self.service.add("Ship it", "work", "medium").task
        self.service.complete(task.id)

        change = self.service.uncomplete(task.id)

        self.assertFalse(change.task.completed)
        self.assertIsNone(change.task.completed_at)
        self.assertEqual(change.stats.xp, 0)
        self.assertEqual(change.stats.streak, 1)

    def test_uncomplete_open_task_is_noop(self) -> None:
        task = self.service.add("Open", "work", "medium").task
        change = self.service.uncomplete(task.id)
        self.assertFalse(change.changed)
        self.assertEqual(change.stats.xp, 0)

    def test_deleting_finished_task_takes_xp_back(self) -> None:
        keep = self.service.add("Keep", "work", "low").task
        drop = self.service.add("Drop", "work", "high").task
        self.service.complete(keep.id)
        self.service.complete(drop.id)

        change = self.service.delete(drop.id)

        self.assertIsNone(change.task)
        self.assertEqual(change.stats.xp, 10)
        self.assertEqual([t.id for t in self.service.list()[0]], [keep.id])

    def test_deleting_open_task_keeps_xp(self) -> None:
        done = self.service.add("Done", "work", "low").task
        self.service.complete(done.id)
        open_task = self.service.add("Open", "work", "high").task

        change = self.service.delete(open_task.id)
        self.assertEqual(change.stats.xp, 10)

    def test_level_up_signal(self) -> None:
        received = []

        def handler(sender, **kwargs):
            received.append(kwargs)

        level_up.connect(handler)
        try:
            ids = [self.service.add(f"Task {i}", "work", "high").task.id for i in range(4)]
            results = [self.service.complete(task_id) for task_id in ids]
        finally:
            level_up.disconnect(handler)

        # 30, 60, 90, 120 xp: only the fourth crosses into level 2.
        self.assertEqual([r.leveled_up for r in results], [False, False, False, True])
        self.assertEqual(len(received), 1)
        self.assertEqual(received[0]["level"], 2)

    def test_streak_follows_device_calendar(self) -> None:
        service = TaskService(Identity(GUEST), self.device, tz=ZoneInfo("Etc/GMT+8"))
        late = service.add("Late", "work", "medium").task
        early = service.add("Early", "work", "medium").task

        # 07:00Z and 16:00Z on Mar 11 are Mar 10 and Mar 11 at UTC-8.
        with patch("django.utils.timezone.now", return_value=datetime.datetime(2024, 3, 11, 7, tzinfo=datetime.timezone.utc)):
            first = service.complete(late.id)
        with patch("django.utils.timezone.now", return_value=datetime.datetime(2024, 3, 11, 16, tzinfo=datetime.timezone.utc)):
            second = service.complete(early.id)

        self.assertEqual(first.stats.last_task_date, datetime.date(2024, 3, 10))
        self.assertEqual(second.stats.streak, 2)

    def test_list_filters(self) -> None:
        a = self.service.add("A", "work", "high").task
        self.service.add("B", "shopping", "low")
        self.service.complete(a.id)

        finished, counts = self.service.list(status="finished")
        self.assertEqual([t.id for t in finished], [a.id])
        self.assertEqual(counts, {"all": 2, "ongoing": 1, "finished": 1})

        shopping, _ = self.service.list(category="shopping", priority="low")
        self.assertEqual([t.text for t in shopping], ["B"])


class RemoteTaskServiceTest(TestCase):
    """Signed-in users: tasks and stats live in the database."""

    def setUp(self) -> None:
        self.user = User.objects.create_user(email="player@example.com", password="secret123")
        self.device = DeviceStorage({})
        self.identity = Identity(AUTHENTICATED, self.user.pk)
        self.service = TaskService(self.identity, self.device)

    def test_tasks_are_stored_remotely(self) -> None:
        task = self.service.add("Remote", "work", "medium").task

        self.assertTrue(self.service.store.is_remote)
        self.assertEqual(self.user.tasks.get().id, task.id)
        self.assertFalse(LocalStore(self.device).has_tasks())

    def test_complete_updates_row(self) -> None:
        task = self.service.add("Remote", "work", "medium").task
        change = self.service.complete(task.id)

        row = self.user.tasks.get(id=task.id)
        self.assertTrue(row.completed)
        self.assertIsNotNone(row.completed_at)
        self.assertEqual(change.stats.xp, 20)

    def test_stats_are_kept_per_user_not_per_device(self) -> None:
        task = self.service.add("Remote", "work", "medium").task
        self.service.complete(task.id)

        self.assertEqual(UserProgress.objects.get(user=self.user).xp, 20)
        self.assertIsNone(self.device.get(STATS_KEY))
        # A fresh device sees the same progress.
        other_device = TaskService(self.identity, DeviceStorage({}))
        self.assertEqual(other_device.progress.stats.xp, 20)

    def test_first_sign_in_seeds_progress_from_device(self) -> None:
        device = DeviceStorage({STATS_KEY: {"xp": 50, "level": 1, "streak": 2, "lastTaskDate": "2024-03-01"}})
        service = TaskService(self.identity, device)

        self.assertEqual(service.progress.stats.xp, 50)
        self.assertEqual(UserProgress.objects.get(user=self.user).streak, 2)

    @patch("tasks.sync_tasks.replay_remote_write.delay")
    def test_failed_write_is_reported_and_queued(self, mock_delay: MagicMock) -> None:
        task = self.service.add("Remote", "work", "medium").task
        errors = []
        service = TaskService(self.identity, self.device, on_sync_error=lambda *args: errors.append(args))

        with patch.object(service.store, "update", side_effect=PersistenceError("Failed to update task")):
            change = service.complete(task.id)

        # The optimistic result still stands for the caller.
        self.assertTrue(change.task.completed)
        self.assertEqual(change.stats.xp, 20)
        self.assertFalse(change.sync.ok)
        self.assertTrue(change.sync.queued_retry)
        self.assertEqual(change.sync.error, "Failed to update task")

        mock_delay.assert_called_once()
        op, user_id, payload = mock_delay.call_args.args
        self.assertEqual((op, user_id, payload["id"]), ("update", self.user.pk, str(task.id)))
        self.assertTrue(payload["completed"])
        self.assertEqual(errors[0][0], "update")

    @patch("tasks.sync_tasks.replay_remote_write.delay", side_effect=ConnectionError("broker down"))
    def test_broker_outage_is_not_fatal(self, mock_delay: MagicMock) -> None:
        with patch.object(self.service.store, "create", side_effect=PersistenceError("Failed to insert task")):
            change = self.service.add("Remote", "work", "medium")

        self.assertFalse(change.sync.ok)
        self.assertFalse(change.sync.queued_retry)
