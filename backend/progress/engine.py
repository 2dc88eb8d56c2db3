# progress/engine.py
"""
Gamification engine: experience points, levels and daily streaks.

Pure state transitions over ``UserStats``; nothing here touches storage.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from django.utils import timezone

XP_PER_LEVEL = 100

XP_BY_PRIORITY: Dict[str, int] = {
    "high": 30,
    "medium": 20,
    "low": 10,
}


@dataclass(frozen=True)
class UserStats:
    xp: int = 0
    level: int = 1
    streak: int = 0
    last_task_date: Optional[datetime.date] = None

    @property
    def xp_in_level(self) -> int:
        return self.xp % XP_PER_LEVEL

    @property
    def xp_required(self) -> int:
        return self.level * XP_PER_LEVEL

    def to_storage(self) -> Dict[str, Any]:
        return {
            "xp": self.xp,
            "level": self.level,
            "streak": self.streak,
            "lastTaskDate": self.last_task_date.isoformat() if self.last_task_date else "",
        }

    @classmethod
    def from_storage(cls, raw: Optional[Dict[str, Any]]) -> "UserStats":
        """Rebuild stats from the device encoding; level is always re-derived."""
        if not isinstance(raw, dict):
            return cls()
        try:
            xp = max(0, int(raw.get("xp", 0) or 0))
        except (TypeError, ValueError):
            xp = 0
        try:
            streak = max(0, int(raw.get("streak", 0) or 0))
        except (TypeError, ValueError):
            streak = 0
        last = raw.get("lastTaskDate") or None
        try:
            last_date = datetime.date.fromisoformat(last) if last else None
        except (TypeError, ValueError):
            last_date = None
        return cls(xp=xp, level=level_for_xp(xp), streak=streak, last_task_date=last_date)


def xp_for_priority(priority: str) -> int:
    return XP_BY_PRIORITY[priority]


def level_for_xp(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


def _next_streak(stats: UserStats, today: datetime.date) -> int:
    if stats.last_task_date == today:
        return stats.streak
    if stats.last_task_date == today - datetime.timedelta(days=1) or stats.streak == 0:
        return stats.streak + 1
    return 1


def apply_completion(
    stats: UserStats,
    task: Any,
    today: Optional[datetime.date] = None,
) -> UserStats:
    """
    Award the task's XP and advance the streak.

    ``today`` defaults to the local calendar date of the current moment.
    """
    if today is None:
        today = timezone.localdate()
    xp = stats.xp + xp_for_priority(task.priority)
    return UserStats(
        xp=xp,
        level=level_for_xp(xp),
        streak=_next_streak(stats, today),
        last_task_date=today,
    )


def revert_completion(stats: UserStats, task: Any) -> UserStats:
    """Take the task's XP back. Streak and last_task_date are left alone."""
    xp = max(0, stats.xp - xp_for_priority(task.priority))
    return replace(stats, xp=xp, level=level_for_xp(xp))


def leveled_up(before: UserStats, after: UserStats) -> bool:
    return after.level > before.level
