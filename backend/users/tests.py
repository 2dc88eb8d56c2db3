# users/tests.py
"""
Users App Test Suite
====================

Test Categories:
----------------
1. DeviceStorage Tests - device key handling
2. Friendly Message Tests - auth failure texts shown to users
3. User Manager Tests - email accounts
4. SessionController Tests - identity, sign up/in/out, guest mode, profile, timezone
5. Migration Tests - device tasks copied once per user and device
6. Auth API Tests - HTTP endpoints
"""

from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.contrib.sessions.backends.db import SessionStore
from django.contrib.auth.models import AnonymousUser
from django.core.cache import cache
from django.test import RequestFactory, SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from api.exceptions import RATE_LIMIT_MESSAGE, AuthError, InvalidInput, PersistenceError
from tasks.models import Task
from tasks.stores import LocalStore
from tasks.tests.factories import make_item

from .device import (
    GUEST_MODE_KEY,
    STATS_KEY,
    TASKS_KEY,
    DeviceStorage,
    migration_key,
)
from .session import ANONYMOUS, AUTHENTICATED, GUEST, SessionController, friendly_auth_message

User = get_user_model()


def make_request():
    request = RequestFactory().post("/")
    request.session = SessionStore()
    request.user = AnonymousUser()
    return request


# ===========================================================================
# DEVICE STORAGE TESTS
# ===========================================================================

class DeviceStorageTest(SimpleTestCase):

    def test_snapshot_holds_only_device_keys(self):
        backend = {TASKS_KEY: [], GUEST_MODE_KEY: True, migration_key(4): True, "_auth_user_id": "4"}
        snapshot = DeviceStorage(backend).snapshot()

        self.assertEqual(set(snapshot), {TASKS_KEY, GUEST_MODE_KEY, "migrated-tasks-4"})

    def test_restore_and_remove(self):
        device = DeviceStorage({})
        device.restore({STATS_KEY: {"xp": 10}})
        self.assertTrue(device.has(STATS_KEY))

        device.remove(STATS_KEY)
        device.remove(STATS_KEY)
        self.assertIsNone(device.get(STATS_KEY))


# ===========================================================================
# FRIENDLY MESSAGE TESTS
# ===========================================================================

class FriendlyAuthMessageTest(SimpleTestCase):

    def test_known_messages_are_mapped(self):
        self.assertEqual(friendly_auth_message("Invalid login credentials"), "Invalid email or password")
        self.assertEqual(friendly_auth_message("Email rate limit exceeded"), RATE_LIMIT_MESSAGE)

    def test_other_messages_pass_through(self):
        self.assertEqual(friendly_auth_message("User already registered"), "User already registered")
        self.assertEqual(friendly_auth_message(""), "Authentication failed")


# ===========================================================================
# USER MANAGER TESTS
# ===========================================================================

class UserManagerTest(TestCase):

    def test_create_user_normalizes_email_domain(self):
        user = User.objects.create_user(email="Player@Example.COM", password="secret123")
        self.assertEqual(user.email, "Player@example.com")
        self.assertTrue(user.check_password("secret123"))

    def test_create_user_requires_email(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="", password="secret123")

    def test_email_taken_ignores_case(self):
        User.objects.create_user(email="player@example.com", password="secret123")
        self.assertTrue(User.objects.email_taken("PLAYER@example.com"))
        self.assertFalse(User.objects.email_taken("other@example.com"))

    def test_create_superuser_flags(self):
        admin = User.objects.create_superuser(email="admin@example.com", password="secret123")
        self.assertTrue(admin.is_staff and admin.is_superuser and admin.is_active)

        with self.assertRaises(ValueError):
            User.objects.create_superuser(email="bad@example.com", password="secret123", is_staff=False)


# ===========================================================================
# SESSION CONTROLLER TESTS
# ===========================================================================

class SessionControllerTest(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email="player@example.com", password="secret123")
        self.request = make_request()
        self.controller = SessionController(self.request)

    def test_identity_states(self):
        self.assertEqual(self.controller.identity.kind, ANONYMOUS)

        self.controller.enable_guest_mode()
        self.assertEqual(self.controller.identity.kind, GUEST)

        self.controller.sign_in("player@example.com", "secret123")
        identity = self.controller.identity
        self.assertEqual(identity.kind, AUTHENTICATED)
        self.assertEqual(identity.user_id, self.user.pk)

    def test_sign_in_clears_guest_flag(self):
        self.controller.enable_guest_mode()
        self.controller.sign_in("player@example.com", "secret123")
        self.assertFalse(self.controller.device.has(GUEST_MODE_KEY))

    def test_sign_in_returns_tokens_with_claims(self):
        result = self.controller.sign_in("player@example.com", "secret123")

        self.assertIn("access", result.tokens)
        self.assertIn("refresh", result.tokens)
        self.assertEqual(result.user, self.user)

    def test_wrong_password(self):
        with self.assertRaises(AuthError) as ctx:
            self.controller.sign_in("player@example.com", "nope")
        self.assertEqual(ctx.exception.message, "Invalid email or password")
        self.assertEqual(self.controller.identity.kind, ANONYMOUS)

    def test_sign_in_requires_both_fields(self):
        with self.assertRaises(InvalidInput):
            self.controller.sign_in("", "secret123")

    def test_sign_up_validation(self):
        cases = [
            (dict(email="", password="secret123"), "Email and password are required"),
            (dict(email="new@example.com", password="secret123", confirm="other"), "Passwords do not match"),
            (dict(email="new@example.com", password="secret123", age="abc"), "Please enter a valid age"),
            (dict(email="new@example.com", password="secret123", age="0"), "Please enter a valid age"),
        ]
        for kwargs, message in cases:
            with self.subTest(message=message):
                with self.assertRaises(InvalidInput) as ctx:
                    self.controller.sign_up(**kwargs)
                self.assertEqual(ctx.exception.message, message)
        self.assertFalse(User.objects.filter(email="new@example.com").exists())

    def test_sign_up_creates_and_signs_in(self):
        result = self.controller.sign_up("new@example.com", "secret123", confirm="secret123", username="newbie", age="30")

        self.assertEqual(result.user.age, 30)
        self.assertEqual(result.user.username, "newbie")
        self.assertEqual(self.controller.identity.user_id, result.user.pk)

    def test_sign_up_with_taken_email(self):
        with self.assertRaises(AuthError) as ctx:
            self.controller.sign_up("player@example.com", "secret123")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_sign_out_keeps_device_data(self):
        self.controller.sign_in("player@example.com", "secret123")
        self.controller.device.set(STATS_KEY, {"xp": 40, "level": 1, "streak": 1, "lastTaskDate": ""})

        identity = self.controller.sign_out()

        self.assertEqual(identity.kind, ANONYMOUS)
        self.assertEqual(self.controller.device.get(STATS_KEY)["xp"], 40)
        self.assertNotIn("_auth_user_id", self.request.session)

    def test_sign_out_blacklists_refresh_token(self):
        tokens = self.controller.sign_in("player@example.com", "secret123").tokens
        self.controller.sign_out(tokens["refresh"])

        response = self.client.post("/api/v1/auth/token/refresh/", {"refresh": tokens["refresh"]})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_sign_out_with_bad_token_still_signs_out(self):
        self.controller.sign_in("player@example.com", "secret123")
        self.assertEqual(self.controller.sign_out("not-a-token").kind, ANONYMOUS)

    def test_timezone_header_is_remembered_on_device(self):
        self.assertIsNone(self.controller.timezone)

        self.request.META["HTTP_X_TIMEZONE"] = "Etc/GMT+8"
        self.assertEqual(str(self.controller.timezone), "Etc/GMT+8")

        del self.request.META["HTTP_X_TIMEZONE"]
        self.assertEqual(str(SessionController(self.request).timezone), "Etc/GMT+8")

    def test_unknown_timezone_is_rejected(self):
        self.request.META["HTTP_X_TIMEZONE"] = "Mars/Olympus"
        with self.assertRaises(InvalidInput) as ctx:
            self.controller.timezone
        self.assertEqual(ctx.exception.message, "Unknown timezone: Mars/Olympus")

    def test_update_profile(self):
        self.controller.sign_in("player@example.com", "secret123")

        user = self.controller.update_profile({"username": "  hero  ", "age": "31"})

        user.refresh_from_db()
        self.assertEqual((user.username, user.age), ("hero", 31))

    def test_update_profile_validation(self):
        self.controller.sign_in("player@example.com", "secret123")
        cases = [
            ({"age": "-3"}, "Please enter a valid age"),
            ({"age": ""}, "Please enter a valid age"),
            ({"username": "   "}, "Please enter a valid username"),
        ]
        for changes, message in cases:
            with self.subTest(message=message):
                with self.assertRaises(InvalidInput) as ctx:
                    self.controller.update_profile(changes)
                self.assertEqual(ctx.exception.message, message)

    def test_update_profile_needs_signed_in_user(self):
        with self.assertRaises(AuthError):
            self.controller.update_profile({"age": "20"})

    def test_guest_mode_needs_signed_out_user(self):
        self.controller.sign_in("player@example.com", "secret123")
        with self.assertRaises(InvalidInput):
            self.controller.enable_guest_mode()

    def test_disable_guest_mode(self):
        self.controller.enable_guest_mode()
        self.assertEqual(self.controller.disable_guest_mode().kind, ANONYMOUS)


# ===========================================================================
# MIGRATION TESTS
# ===========================================================================

class MigrationTest(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email="player@example.com", password="secret123")
        self.request = make_request()
        self.controller = SessionController(self.request)
        self.local = [make_item("Older", minutes=0), make_item("Newer", minutes=1, completed=True)]
        LocalStore(self.controller.device).save_all(self.local)

    def test_first_sign_in_copies_device_tasks(self):
        result = self.controller.sign_in("player@example.com", "secret123")

        self.assertEqual(result.migrated, 2)
        rows = {row.id: row for row in Task.objects.filter(user=self.user)}
        self.assertEqual(set(rows), {t.id for t in self.local})
        self.assertTrue(rows[self.local[1].id].completed)
        self.assertTrue(self.controller.device.get(migration_key(self.user.pk)))

    def test_migration_runs_once_per_user(self):
        with patch("users.session.RemoteStore.bulk_create", return_value=2) as mock_bulk:
            self.controller.sign_in("player@example.com", "secret123")
            self.controller.sign_out()
            self.controller.sign_in("player@example.com", "secret123")

        mock_bulk.assert_called_once()

    def test_failed_migration_is_retried_next_time(self):
        with patch("users.session.RemoteStore.bulk_create", side_effect=PersistenceError("down")):
            result = self.controller.sign_in("player@example.com", "secret123")

        self.assertEqual(result.migrated, 0)
        self.assertFalse(self.controller.device.has(migration_key(self.user.pk)))

        self.controller.sign_out()
        result = self.controller.sign_in("player@example.com", "secret123")
        self.assertEqual(result.migrated, 2)

    def test_nothing_saved_means_nothing_migrated(self):
        request = make_request()
        controller = SessionController(request)

        with patch("users.session.RemoteStore.bulk_create") as mock_bulk:
            result = controller.sign_in("player@example.com", "secret123")

        mock_bulk.assert_not_called()
        self.assertEqual(result.migrated, 0)
        self.assertFalse(controller.device.has(migration_key(self.user.pk)))

    def test_second_user_on_same_device_gets_own_copy(self):
        self.local = self.local[:1]
        LocalStore(self.controller.device).save_all(self.local)
        other = User.objects.create_user(email="sibling@example.com", password="secret123")

        first = self.controller.sign_in("player@example.com", "secret123")
        self.controller.sign_out()
        second = self.controller.sign_in("sibling@example.com", "secret123")

        self.assertEqual((first.migrated, second.migrated), (1, 1))
        self.assertEqual(Task.objects.filter(user=other).count(), 1)
        self.assertEqual(Task.objects.get(id=self.local[0].id).user, self.user)
        self.assertTrue(self.controller.device.get(migration_key(other.pk)))

    def test_device_tasks_stay_on_device(self):
        self.controller.sign_in("player@example.com", "secret123")
        self.assertEqual(len(self.controller.device.get(TASKS_KEY)), 2)


# ===========================================================================
# AUTH API TESTS
# ===========================================================================

class AuthAPITest(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(email="player@example.com", password="secret123")

    def test_register(self):
        response = self.client.post(
            "/api/v1/auth/register/",
            {"email": "new@example.com", "password": "secret123", "confirm_password": "secret123", "age": "25"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["user"]["email"], "new@example.com")
        self.assertEqual(response.data["identity"]["kind"], AUTHENTICATED)
        self.assertIn("access", response.data["tokens"])

    def test_register_mismatched_passwords(self):
        response = self.client.post(
            "/api/v1/auth/register/",
            {"email": "new@example.com", "password": "secret123", "confirm_password": "secret321"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {"error": "Passwords do not match"})

    def test_login_and_session(self):
        response = self.client.post(
            "/api/v1/auth/login/", {"email": "player@example.com", "password": "secret123"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get("/api/v1/auth/session/")
        self.assertEqual(response.data["identity"]["kind"], AUTHENTICATED)
        self.assertEqual(response.data["user"]["email"], "player@example.com")

    def test_login_failure(self):
        response = self.client.post(
            "/api/v1/auth/login/", {"email": "player@example.com", "password": "wrong"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data, {"error": "Invalid email or password"})

    def test_login_migrates_guest_tasks(self):
        self.client.post("/api/v1/auth/guest/")
        self.client.post("/api/v1/tasks/", {"text": "Guest task", "category": "work", "priority": "low"}, format="json")

        response = self.client.post(
            "/api/v1/auth/login/", {"email": "player@example.com", "password": "secret123"}, format="json"
        )

        self.assertEqual(response.data["migrated"], 1)
        self.assertEqual(self.user.tasks.get().text, "Guest task")
        self.assertEqual(self.client.get("/api/v1/tasks/").data["counts"]["all"], 1)

    def test_guest_mode_and_logout(self):
        response = self.client.post("/api/v1/auth/guest/")
        self.assertEqual(response.data["identity"]["kind"], GUEST)

        response = self.client.delete("/api/v1/auth/guest/")
        self.assertEqual(response.data["identity"]["kind"], ANONYMOUS)

        self.client.post("/api/v1/auth/login/", {"email": "player@example.com", "password": "secret123"}, format="json")
        response = self.client.post("/api/v1/auth/logout/", {}, format="json")
        self.assertEqual(response.data["identity"]["kind"], ANONYMOUS)

    def test_user_detail_requires_auth(self):
        response = self.client.get("/api/v1/auth/user/")
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

        self.client.force_login(self.user)
        response = self.client.get("/api/v1/auth/user/")
        self.assertEqual(response.data["email"], "player@example.com")

    def test_user_detail_patch(self):
        self.client.force_login(self.user)

        response = self.client.patch("/api/v1/auth/user/", {"username": "hero", "age": "27"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["username"], "hero")
        self.assertEqual(response.data["age"], 27)
        self.user.refresh_from_db()
        self.assertEqual(self.user.age, 27)

    def test_user_detail_patch_rejects_bad_age(self):
        self.client.force_login(self.user)

        response = self.client.patch("/api/v1/auth/user/", {"age": "0"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {"error": "Please enter a valid age"})
        self.user.refresh_from_db()
        self.assertIsNone(self.user.age)

    def test_user_detail_patch_requires_auth(self):
        response = self.client.patch("/api/v1/auth/user/", {"age": "30"}, format="json")
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_login_is_throttled(self):
        with patch("rest_framework.throttling.ScopedRateThrottle.allow_request", return_value=False), \
                patch("rest_framework.throttling.ScopedRateThrottle.wait", return_value=30):
            response = self.client.post(
                "/api/v1/auth/login/", {"email": "player@example.com", "password": "secret123"}, format="json"
            )

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data, {"error": RATE_LIMIT_MESSAGE})
