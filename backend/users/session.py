# users/session.py
"""
Session / migration controller.

Tracks who is calling (authenticated user, guest, or anonymous visitor) and
drives the identity transitions. Signing in for the first time on a device
copies the device task list into the user's remote store exactly once per
user and device; a failed copy is retried on the next sign-in.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.contrib.auth import authenticate, get_user_model, login, logout
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from api.exceptions import RATE_LIMIT_MESSAGE, AuthError, InvalidInput, PersistenceError
from tasks.stores import LocalStore, RemoteStore

from .device import GUEST_MODE_KEY, TIMEZONE_KEY, DeviceStorage, migration_key
from .serializers import CustomTokenObtainPairSerializer

logger = logging.getLogger(__name__)

AUTHENTICATED = "authenticated"
GUEST = "guest"
ANONYMOUS = "anonymous"

# IANA name of the device timezone, e.g. "Europe/Berlin".
TIMEZONE_HEADER = "HTTP_X_TIMEZONE"

_FRIENDLY_AUTH_MESSAGES = (
    (re.compile(r"invalid login credentials", re.IGNORECASE), "Invalid email or password"),
    (re.compile(r"email rate limit|over email rate limit|too many requests", re.IGNORECASE), RATE_LIMIT_MESSAGE),
)


def friendly_auth_message(message: str) -> str:
    """Map known credential/session failures to the text shown to users."""
    msg = (message or "").strip() or "Authentication failed"
    for pattern, friendly in _FRIENDLY_AUTH_MESSAGES:
        if pattern.search(msg):
            return friendly
    return msg


def parse_age(age: Any) -> int:
    try:
        parsed = int(age)
    except (TypeError, ValueError):
        parsed = 0
    if parsed <= 0:
        raise InvalidInput("Please enter a valid age")
    return parsed


def parse_timezone(name: str) -> datetime.tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInput(f"Unknown timezone: {name}") from e


@dataclass(frozen=True)
class Identity:
    kind: str
    user_id: Optional[Any] = None

    @property
    def is_authenticated(self) -> bool:
        return self.kind == AUTHENTICATED

    @property
    def is_guest(self) -> bool:
        return self.kind == GUEST

    def as_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "user_id": self.user_id}

    def __str__(self) -> str:
        return f"user {self.user_id}" if self.is_authenticated else self.kind


@dataclass
class SignInResult:
    user: Any
    identity: Identity
    tokens: Dict[str, str]
    migrated: int = 0


class SessionController:
    """Identity state and transitions for one request (device = request.session)."""

    def __init__(self, request: Any) -> None:
        self.request = request
        self.device = DeviceStorage(request.session)

    # ---- identity ----

    @property
    def identity(self) -> Identity:
        user = getattr(self.request, "user", None)
        if user is not None and user.is_authenticated:
            return Identity(AUTHENTICATED, user.pk)
        if self.device.get(GUEST_MODE_KEY) is True:
            return Identity(GUEST)
        return Identity(ANONYMOUS)

    @property
    def timezone(self) -> Optional[datetime.tzinfo]:
        """Device timezone from the X-Timezone header, remembered on the device."""
        name = (self.request.META.get(TIMEZONE_HEADER) or "").strip()
        if name:
            tz = parse_timezone(name)
            if self.device.get(TIMEZONE_KEY) != name:
                self.device.set(TIMEZONE_KEY, name)
            return tz
        stored = self.device.get(TIMEZONE_KEY)
        return parse_timezone(stored) if stored else None

    # ---- transitions ----

    def sign_in(self, email: str, password: str) -> SignInResult:
        if not email or not password:
            raise InvalidInput("Email and password are required")

        user = authenticate(self.request, email=email, password=password)
        if user is None:
            logger.info(f"Sign in rejected for {email}")
            raise AuthError(friendly_auth_message("Invalid login credentials"))
        return self._start_session(user)

    def sign_up(
        self,
        email: str,
        password: str,
        confirm: Optional[str] = None,
        username: Optional[str] = None,
        age: Optional[Any] = None,
    ) -> SignInResult:
        if not email or not password:
            raise InvalidInput("Email and password are required")
        if confirm is not None and password != confirm:
            raise InvalidInput("Passwords do not match")
        try:
            validate_password(password)
        except DjangoValidationError as e:
            raise InvalidInput(" ".join(e.messages)) from e

        parsed_age = None
        if age not in (None, ""):
            parsed_age = parse_age(age)

        User = get_user_model()
        if User.objects.email_taken(email):
            raise AuthError("User already registered", status_code=400)
        try:
            user = User.objects.create_user(
                email=email,
                password=password,
                username=username or None,
                age=parsed_age,
            )
        except IntegrityError as e:
            raise AuthError("User already registered", status_code=400) from e

        logger.info(f"Signed up user {user.pk}")
        return self._start_session(user)

    def sign_out(self, refresh: Optional[str] = None) -> Identity:
        if refresh:
            try:
                RefreshToken(refresh).blacklist()
            except TokenError as e:
                logger.warning(f"Refresh token not blacklisted on sign out: {e}")

        # logout() flushes the session; the device data has to survive it.
        saved = self.device.snapshot()
        logout(self.request)
        self.device = DeviceStorage(self.request.session)
        self.device.restore(saved)
        self.device.remove(GUEST_MODE_KEY)
        return self.identity

    def enable_guest_mode(self) -> Identity:
        if self.identity.is_authenticated:
            raise InvalidInput("Sign out before switching to guest mode")
        self.device.set(GUEST_MODE_KEY, True)
        return self.identity

    def disable_guest_mode(self) -> Identity:
        self.device.remove(GUEST_MODE_KEY)
        return self.identity

    def update_profile(self, changes: Dict[str, Any]) -> Any:
        """Edit username and/or age of the signed-in user."""
        user = self.request.user
        if not user.is_authenticated:
            raise AuthError("Not signed in")

        fields = []
        if "username" in changes:
            username = (changes["username"] or "").strip()
            if not username:
                raise InvalidInput("Please enter a valid username")
            user.username = username
            fields.append("username")
        if "age" in changes:
            user.age = parse_age(changes["age"])
            fields.append("age")

        if fields:
            user.save(update_fields=fields)
            logger.info(f"Profile of user {user.pk} updated: {', '.join(fields)}")
        return user

    # ---- migration ----

    def migrate_local_tasks(self, user_id: Any) -> int:
        """
        Copy the device task list into the remote store once per user.

        The flag is only written after the insert succeeded, so a failure
        leaves it unset and the next sign-in tries again.
        """
        flag = migration_key(user_id)
        if self.device.get(flag):
            return 0

        local = LocalStore(self.device)
        if not local.has_tasks():
            return 0

        tasks = local.load()
        try:
            inserted = RemoteStore(user_id).bulk_create(tasks)
        except PersistenceError as e:
            logger.error(f"Task migration failed for user {user_id}: {e}")
            return 0

        self.device.set(flag, True)
        logger.info(f"Migrated {inserted} device tasks for user {user_id}")
        return inserted

    # ---- helpers ----

    def _start_session(self, user: Any) -> SignInResult:
        # login() may flush or rotate the session; carry device keys across.
        saved = self.device.snapshot()
        login(self.request, user, backend="django.contrib.auth.backends.ModelBackend")
        self.device = DeviceStorage(self.request.session)
        self.device.restore(saved)
        self.device.remove(GUEST_MODE_KEY)

        migrated = self.migrate_local_tasks(user.pk)

        refresh = CustomTokenObtainPairSerializer.get_token(user)
        tokens = {"refresh": str(refresh), "access": str(refresh.access_token)}
        return SignInResult(
            user=user,
            identity=Identity(AUTHENTICATED, user.pk),
            tokens=tokens,
            migrated=migrated,
        )
