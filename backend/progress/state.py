# progress/state.py

from __future__ import annotations

import logging
from typing import Any, List, Optional

from django.db import DatabaseError

from api.exceptions import InvalidInput, PersistenceError
from users.device import CATEGORIES_KEY, STATS_KEY, DeviceStorage

from .engine import UserStats
from .models import UserProgress

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ("work", "personal", "shopping", "other")


def normalize_category(name: str) -> str:
    return (name or "").strip().lower()


class UserProgressStorage:
    """
    The ``UserProgress`` row of one user behind the device key interface.

    Only the stats and category keys are understood. The row is created on
    first access, seeded from ``seed`` (normally the caller's device) so a
    user signing in keeps what they earned on this device.
    """

    def __init__(self, user_id: Any, seed: Optional[DeviceStorage] = None) -> None:
        self.user_id = user_id
        self.seed = seed
        self._row = None

    @property
    def row(self):
        if self._row is None:
            defaults = {}
            if self.seed is not None:
                stats = UserStats.from_storage(self.seed.get(STATS_KEY))
                defaults = {
                    "xp": stats.xp,
                    "level": stats.level,
                    "streak": stats.streak,
                    "last_task_date": stats.last_task_date,
                }
                categories = self.seed.get(CATEGORIES_KEY)
                if isinstance(categories, list) and categories:
                    defaults["categories"] = [str(c) for c in categories]
            try:
                self._row, created = UserProgress.objects.get_or_create(user_id=self.user_id, defaults=defaults)
            except DatabaseError as e:
                raise PersistenceError("Failed to load progress", details=str(e)) from e
            if created:
                logger.info(f"Progress row created for user {self.user_id}")
        return self._row

    def get(self, key: str, default: Any = None) -> Any:
        if key == STATS_KEY:
            row = self.row
            return UserStats(
                xp=row.xp, level=row.level, streak=row.streak, last_task_date=row.last_task_date
            ).to_storage()
        if key == CATEGORIES_KEY:
            return list(self.row.categories)
        return default

    def set(self, key: str, value: Any) -> None:
        row = self.row
        if key == STATS_KEY:
            stats = UserStats.from_storage(value)
            row.xp, row.level, row.streak = stats.xp, stats.level, stats.streak
            row.last_task_date = stats.last_task_date
            fields = ["xp", "level", "streak", "last_task_date", "updated_at"]
        elif key == CATEGORIES_KEY:
            row.categories = list(value)
            fields = ["categories", "updated_at"]
        else:
            raise KeyError(key)
        try:
            row.save(update_fields=fields)
        except DatabaseError as e:
            raise PersistenceError("Failed to save progress", details=str(e)) from e


class ProgressState:
    """
    Gamification state: user stats and the category set.

    Backed by the device for guests and anonymous visitors and by the
    user's ``UserProgress`` row once signed in (see ``for_identity``).
    Loaded once on construction, written back by every mutation.
    """

    def __init__(self, device) -> None:
        self.device = device
        self.stats: UserStats = UserStats()
        self.categories: List[str] = list(DEFAULT_CATEGORIES)
        self.load()

    @classmethod
    def for_identity(cls, identity: Any, device: DeviceStorage) -> "ProgressState":
        if getattr(identity, "is_authenticated", False):
            return cls(UserProgressStorage(identity.user_id, seed=device))
        return cls(device)

    def load(self) -> None:
        self.stats = UserStats.from_storage(self.device.get(STATS_KEY))

        raw = self.device.get(CATEGORIES_KEY)
        if isinstance(raw, list) and raw:
            self.categories = [str(c) for c in raw]
        else:
            self.categories = list(DEFAULT_CATEGORIES)

    def set_stats(self, stats: UserStats) -> None:
        self.stats = stats
        self.device.set(STATS_KEY, stats.to_storage())

    def has_category(self, name: str) -> bool:
        return normalize_category(name) in self.categories

    def add_category(self, name: str) -> str:
        category = normalize_category(name)
        if not category:
            raise InvalidInput("Category name is required")
        if category in self.categories:
            raise InvalidInput(f'Category "{category}" already exists')
        self.categories.append(category)
        self.device.set(CATEGORIES_KEY, list(self.categories))
        logger.info(f"Category added: {category}")
        return category
