# tasks/tests/test_views.py
"""
Tasks API Tests
===============

Guests and anonymous visitors keep tasks in their session (device store);
signed-in users get database rows, and their stats and categories live in
a per-user progress row so bearer-only clients keep them too.
"""

from __future__ import annotations

import datetime
import uuid
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from progress.models import UserProgress
from tasks.models import Task

User = get_user_model()

TASKS_URL = "/api/v1/tasks/"


def detail_url(task_id) -> str:
    return f"{TASKS_URL}{task_id}/"


class GuestTasksAPITest(APITestCase):

    def setUp(self) -> None:
        self.client.post("/api/v1/auth/guest/")

    def add(self, text="Write report", **extra):
        payload = {"text": text, "category": "work", "priority": "medium", **extra}
        return self.client.post(TASKS_URL, payload, format="json")

    def test_create_task(self) -> None:
        response = self.add(priority="high", start_date="2024-05-01", end_date="2024-05-02")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        task = response.data["task"]
        self.assertEqual(task["text"], "Write report")
        self.assertFalse(task["completed"])
        self.assertIsNone(task["completed_at"])
        self.assertEqual(task["start_date"], "2024-05-01")
        self.assertTrue(response.data["sync"]["ok"])
        self.assertEqual(Task.objects.count(), 0)

    def test_create_validation(self) -> None:
        response = self.add(text="   ")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "Task text is required")

        response = self.add(start_date="2024-05-02", end_date="2024-05-01")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "InvalidInput")

    def test_list_with_filters_and_counts(self) -> None:
        first = self.add("First").data["task"]
        self.add("Second", category="shopping", priority="low")
        self.client.post(f"{detail_url(first['id'])}complete/")

        response = self.client.get(TASKS_URL)
        self.assertEqual([t["text"] for t in response.data["tasks"]], ["Second", "First"])
        self.assertEqual(response.data["counts"], {"all": 2, "ongoing": 1, "finished": 1})

        response = self.client.get(TASKS_URL, {"status": "ongoing"})
        self.assertEqual([t["text"] for t in response.data["tasks"]], ["Second"])

        response = self.client.get(TASKS_URL, {"category": "shopping", "priority": "high"})
        self.assertEqual(response.data["tasks"], [])

        response = self.client.get(TASKS_URL, {"status": "archived"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_and_uncomplete(self) -> None:
        task = self.add(priority="high").data["task"]

        response = self.client.post(f"{detail_url(task['id'])}complete/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["task"]["completed"])
        self.assertEqual(response.data["stats"]["xp"], 30)
        self.assertTrue(response.data["changed"])

        response = self.client.post(f"{detail_url(task['id'])}complete/")
        self.assertFalse(response.data["changed"])
        self.assertEqual(response.data["stats"]["xp"], 30)

        response = self.client.post(f"{detail_url(task['id'])}uncomplete/")
        self.assertFalse(response.data["task"]["completed"])
        self.assertEqual(response.data["stats"]["xp"], 0)

        stats = self.client.get("/api/v1/progress/stats/").data
        self.assertEqual(stats["xp"], 0)
        self.assertEqual(stats["streak"], 1)

    def test_edit_and_delete(self) -> None:
        task = self.add().data["task"]

        response = self.client.patch(detail_url(task["id"]), {"text": "Edited", "priority": "low"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["task"]["text"], "Edited")

        response = self.client.delete(detail_url(task["id"]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data["task"])

        response = self.client.get(detail_url(task["id"]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unknown_task(self) -> None:
        response = self.client.post(f"{detail_url(uuid.uuid4())}complete/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn("not found", response.data["error"])

    def test_due_reminders(self) -> None:
        past = timezone.now() - datetime.timedelta(minutes=5)
        future = timezone.now() + datetime.timedelta(days=1)
        self.add("Due", reminder_time=past.isoformat())
        self.add("Later", reminder_time=future.isoformat())
        self.add("None")

        response = self.client.get(f"{TASKS_URL}reminders/")
        self.assertEqual([t["text"] for t in response.data["tasks"]], ["Due"])

    def test_custom_category(self) -> None:
        self.assertEqual(self.add(category="gym").status_code, status.HTTP_400_BAD_REQUEST)

        self.client.post("/api/v1/progress/categories/", {"name": "Gym"}, format="json")
        self.assertEqual(self.add(category="gym").status_code, status.HTTP_201_CREATED)


class SignedInTasksAPITest(APITestCase):

    def setUp(self) -> None:
        cache.clear()
        self.user = User.objects.create_user(email="player@example.com", password="secret123")
        self.other = User.objects.create_user(email="rival@example.com", password="secret123")
        self.client.force_login(self.user)

    def test_tasks_are_rows_owned_by_the_user(self) -> None:
        response = self.client.post(
            TASKS_URL, {"text": "Remote", "category": "work", "priority": "low"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        row = Task.objects.get(id=response.data["task"]["id"])
        self.assertEqual(row.user, self.user)

    def test_other_users_tasks_are_not_reachable(self) -> None:
        row = Task.objects.create(user=self.other, text="Private", category="work", priority="high")

        self.assertEqual(self.client.get(TASKS_URL).data["tasks"], [])
        self.assertEqual(self.client.get(detail_url(row.id)).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.delete(detail_url(row.id)).status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Task.objects.filter(id=row.id).exists())

    def test_jwt_access_token_also_works(self) -> None:
        self.client.logout()
        tokens = self.client.post(
            "/api/v1/auth/login/", {"email": "player@example.com", "password": "secret123"}, format="json"
        ).data["tokens"]
        self.client.logout()
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        self.client.post(TASKS_URL, {"text": "Via JWT", "category": "work", "priority": "low"}, format="json")

        self.assertEqual(self.user.tasks.get().text, "Via JWT")

    def test_bearer_only_client_accumulates_xp(self) -> None:
        tokens = APIClient().post(
            "/api/v1/auth/login/", {"email": "player@example.com", "password": "secret123"}, format="json"
        ).data["tokens"]

        # No session cookie: every request starts from an empty session.
        xp = []
        for text in ("One", "Two"):
            client = APIClient()
            client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
            task = client.post(TASKS_URL, {"text": text, "category": "work", "priority": "medium"}, format="json")
            response = client.post(f"{detail_url(task.data['task']['id'])}complete/")
            xp.append(response.data["stats"]["xp"])

        self.assertEqual(xp, [20, 40])
        self.assertEqual(UserProgress.objects.get(user=self.user).xp, 40)

        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        self.assertEqual(client.get("/api/v1/progress/stats/").data["xp"], 40)

    def test_categories_follow_the_user(self) -> None:
        self.client.post("/api/v1/progress/categories/", {"name": "Gym"}, format="json")
        self.client.logout()

        self.client.force_login(self.user)
        self.assertIn("gym", self.client.get("/api/v1/progress/categories/").data["categories"])
        self.assertNotIn("gym", APIClient().get("/api/v1/progress/categories/").data["categories"])

    def test_streak_uses_device_timezone(self) -> None:
        response = self.client.post(TASKS_URL, {"text": "Late", "category": "work", "priority": "low"}, format="json")
        late = response.data["task"]["id"]
        response = self.client.post(TASKS_URL, {"text": "Early", "category": "work", "priority": "low"}, format="json")
        early = response.data["task"]["id"]

        # 23:00 on Mar 10 and 08:00 on Mar 11 for a device at UTC-8.
        with patch("django.utils.timezone.now", return_value=datetime.datetime(2024, 3, 11, 7, tzinfo=datetime.timezone.utc)):
            self.client.post(f"{detail_url(late)}complete/", HTTP_X_TIMEZONE="Etc/GMT+8")
        with patch("django.utils.timezone.now", return_value=datetime.datetime(2024, 3, 11, 16, tzinfo=datetime.timezone.utc)):
            response = self.client.post(f"{detail_url(early)}complete/", HTTP_X_TIMEZONE="Etc/GMT+8")

        self.assertEqual(response.data["stats"]["streak"], 2)
        self.assertEqual(response.data["stats"]["last_task_date"], "2024-03-11")

    def test_unknown_timezone_header(self) -> None:
        task = self.client.post(TASKS_URL, {"text": "Task", "category": "work", "priority": "low"}, format="json")

        response = self.client.post(f"{detail_url(task.data['task']['id'])}complete/", HTTP_X_TIMEZONE="Nowhere/Land")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "Unknown timezone: Nowhere/Land")
