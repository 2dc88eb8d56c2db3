# progress/tests.py
"""
Progress App Test Suite
=======================

Test Categories:
----------------
1. Engine Tests - XP awards, level derivation, streak transitions
2. ProgressState Tests - device and per-user persistence of stats and categories
3. Progress API Tests - stats and categories endpoints
"""

import datetime
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from api.exceptions import InvalidInput
from users.device import CATEGORIES_KEY, STATS_KEY, DeviceStorage

from .engine import (
    UserStats,
    apply_completion,
    level_for_xp,
    leveled_up,
    revert_completion,
    xp_for_priority,
)
from .models import UserProgress
from .signals import level_up
from .state import DEFAULT_CATEGORIES, ProgressState, UserProgressStorage


def make_task(priority="medium"):
    return SimpleNamespace(priority=priority)


# ===========================================================================
# ENGINE TESTS
# ===========================================================================


class XPAndLevelTest(SimpleTestCase):
    """XP per priority and the level formula."""

    def test_xp_per_priority(self) -> None:
        self.assertEqual(xp_for_priority("high"), 30)
        self.assertEqual(xp_for_priority("medium"), 20)
        self.assertEqual(xp_for_priority("low"), 10)

    def test_level_boundaries(self) -> None:
        self.assertEqual(level_for_xp(0), 1)
        self.assertEqual(level_for_xp(99), 1)
        self.assertEqual(level_for_xp(100), 2)
        self.assertEqual(level_for_xp(250), 3)

    def test_level_display_values(self) -> None:
        """Progress inside a level is xp % 100 out of level * 100."""
        stats = UserStats(xp=130, level=2)
        self.assertEqual(stats.xp_in_level, 30)
        self.assertEqual(stats.xp_required, 200)

    def test_level_always_matches_xp_after_transitions(self) -> None:
        stats = UserStats()
        today = datetime.date(2024, 3, 1)
        for priority in ("high", "high", "medium", "low", "high", "high"):
            stats = apply_completion(stats, make_task(priority), today=today)
            self.assertEqual(stats.level, stats.xp // 100 + 1)
        stats = revert_completion(stats, make_task("high"))
        self.assertEqual(stats.level, stats.xp // 100 + 1)

    def test_crossing_100_xp_levels_up(self) -> None:
        before = UserStats(xp=90, level=1)
        after = apply_completion(before, make_task("low"), today=datetime.date(2024, 3, 1))
        self.assertEqual(after.xp, 100)
        self.assertEqual(after.level, 2)
        self.assertTrue(leveled_up(before, after))


class StreakTest(SimpleTestCase):
    """Daily streak transitions on completion."""

    def setUp(self) -> None:
        self.day = datetime.date(2024, 3, 10)

    def test_first_completion_starts_streak(self) -> None:
        stats = apply_completion(UserStats(), make_task(), today=self.day)
        self.assertEqual(stats.streak, 1)
        self.assertEqual(stats.last_task_date, self.day)

    def test_second_completion_same_day_keeps_streak(self) -> None:
        stats = apply_completion(UserStats(), make_task(), today=self.day)
        stats = apply_completion(stats, make_task(), today=self.day)
        self.assertEqual(stats.streak, 1)
        self.assertEqual(stats.xp, 40)

    def test_consecutive_days_extend_streak(self) -> None:
        stats = UserStats()
        for offset in range(4):
            stats = apply_completion(stats, make_task(), today=self.day + datetime.timedelta(days=offset))
        self.assertEqual(stats.streak, 4)

    def test_gap_resets_streak_to_one(self) -> None:
        stats = UserStats(xp=60, level=1, streak=5, last_task_date=self.day)
        stats = apply_completion(stats, make_task(), today=self.day + datetime.timedelta(days=3))
        self.assertEqual(stats.streak, 1)

    def test_zero_streak_with_stale_date_increments(self) -> None:
        stats = UserStats(streak=0, last_task_date=self.day - datetime.timedelta(days=10))
        stats = apply_completion(stats, make_task(), today=self.day)
        self.assertEqual(stats.streak, 1)


class RevertCompletionTest(SimpleTestCase):

    def test_revert_takes_xp_back(self) -> None:
        stats = revert_completion(UserStats(xp=130, level=2, streak=3), make_task("high"))
        self.assertEqual(stats.xp, 100)
        self.assertEqual(stats.level, 2)

    def test_revert_floors_xp_at_zero(self) -> None:
        stats = revert_completion(UserStats(xp=10), make_task("high"))
        self.assertEqual(stats.xp, 0)
        self.assertEqual(stats.level, 1)

    def test_revert_leaves_streak_untouched(self) -> None:
        day = datetime.date(2024, 3, 10)
        stats = revert_completion(UserStats(xp=50, streak=4, last_task_date=day), make_task())
        self.assertEqual(stats.streak, 4)
        self.assertEqual(stats.last_task_date, day)


class UserStatsStorageTest(SimpleTestCase):

    def test_storage_encoding(self) -> None:
        stats = UserStats(xp=120, level=2, streak=2, last_task_date=datetime.date(2024, 1, 5))
        self.assertEqual(
            stats.to_storage(),
            {"xp": 120, "level": 2, "streak": 2, "lastTaskDate": "2024-01-05"},
        )
        self.assertEqual(UserStats().to_storage()["lastTaskDate"], "")

    def test_from_storage_rederives_level(self) -> None:
        stats = UserStats.from_storage({"xp": 250, "level": 1, "streak": 1, "lastTaskDate": ""})
        self.assertEqual(stats.level, 3)
        self.assertIsNone(stats.last_task_date)

    def test_from_storage_tolerates_garbage(self) -> None:
        self.assertEqual(UserStats.from_storage(None), UserStats())
        stats = UserStats.from_storage({"xp": "lots", "streak": -2, "lastTaskDate": "yesterday"})
        self.assertEqual(stats, UserStats())


# ===========================================================================
# PROGRESS STATE TESTS
# ===========================================================================


class ProgressStateTest(SimpleTestCase):

    def setUp(self) -> None:
        self.backend = {}
        self.device = DeviceStorage(self.backend)

    def test_defaults_on_empty_device(self) -> None:
        state = ProgressState(self.device)
        self.assertEqual(state.stats, UserStats())
        self.assertEqual(state.categories, list(DEFAULT_CATEGORIES))

    def test_set_stats_persists_to_device(self) -> None:
        state = ProgressState(self.device)
        state.set_stats(UserStats(xp=40, level=1, streak=1, last_task_date=datetime.date(2024, 2, 2)))

        self.assertEqual(self.backend[STATS_KEY]["xp"], 40)
        self.assertEqual(ProgressState(self.device).stats.xp, 40)

    def test_add_category_normalizes_name(self) -> None:
        state = ProgressState(self.device)
        self.assertEqual(state.add_category("  Fitness "), "fitness")
        self.assertIn("fitness", self.backend[CATEGORIES_KEY])
        self.assertTrue(ProgressState(self.device).has_category("FITNESS"))

    def test_add_category_rejects_duplicates_and_blank(self) -> None:
        state = ProgressState(self.device)
        with self.assertRaises(InvalidInput):
            state.add_category("Work")
        with self.assertRaises(InvalidInput):
            state.add_category("   ")
        self.assertEqual(state.categories, list(DEFAULT_CATEGORIES))


class UserProgressStateTest(TestCase):

    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(email="player@example.com", password="secret123")
        self.identity = SimpleNamespace(is_authenticated=True, user_id=self.user.pk)

    def test_signed_in_state_is_stored_on_the_user(self) -> None:
        device = DeviceStorage({})
        state = ProgressState.for_identity(self.identity, device)
        self.assertIsInstance(state.device, UserProgressStorage)

        state.set_stats(UserStats(xp=120, level=2, streak=3, last_task_date=datetime.date(2024, 2, 2)))
        state.add_category("Reading")

        row = UserProgress.objects.get(user=self.user)
        self.assertEqual((row.xp, row.level, row.streak), (120, 2, 3))
        self.assertIn("reading", row.categories)
        self.assertEqual(device.get(STATS_KEY), None)

        again = ProgressState.for_identity(self.identity, DeviceStorage({}))
        self.assertEqual(again.stats.last_task_date, datetime.date(2024, 2, 2))
        self.assertTrue(again.has_category("reading"))

    def test_guest_state_stays_on_device(self) -> None:
        guest = SimpleNamespace(is_authenticated=False, user_id=None)
        state = ProgressState.for_identity(guest, DeviceStorage({}))
        self.assertIsInstance(state.device, DeviceStorage)
        self.assertFalse(UserProgress.objects.exists())

    def test_new_row_is_seeded_from_device(self) -> None:
        device = DeviceStorage({
            STATS_KEY: {"xp": 70, "level": 1, "streak": 1, "lastTaskDate": "2024-02-02"},
            CATEGORIES_KEY: ["work", "garden"],
        })
        state = ProgressState.for_identity(self.identity, device)

        self.assertEqual(state.stats.xp, 70)
        self.assertEqual(state.categories, ["work", "garden"])


class LevelUpSignalTest(SimpleTestCase):

    def test_receivers_get_level_and_stats(self) -> None:
        received = []

        def handler(sender, **kwargs):
            received.append(kwargs)

        level_up.connect(handler)
        try:
            level_up.send(sender=self.__class__, identity="guest", level=3, stats=UserStats(xp=200, level=3))
        finally:
            level_up.disconnect(handler)

        self.assertEqual(received[0]["level"], 3)


# ===========================================================================
# PROGRESS API TESTS
# ===========================================================================


class ProgressAPITest(APITestCase):

    def test_stats_defaults(self) -> None:
        response = self.client.get("/api/v1/progress/stats/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["xp"], 0)
        self.assertEqual(response.data["level"], 1)
        self.assertEqual(response.data["xp_required"], 100)

    def test_list_categories(self) -> None:
        response = self.client.get("/api/v1/progress/categories/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["categories"], list(DEFAULT_CATEGORIES))

    def test_add_category_then_duplicate(self) -> None:
        response = self.client.post("/api/v1/progress/categories/", {"name": "Gym"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["category"], "gym")

        response = self.client.post("/api/v1/progress/categories/", {"name": "gym"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], 'Category "gym" already exists')

        response = self.client.get("/api/v1/progress/categories/")
        self.assertEqual(response.data["categories"].count("gym"), 1)
