# tasks/filters.py

from __future__ import annotations

import datetime
from typing import Dict, Iterable, List, Optional

from django.utils import timezone

from api.exceptions import InvalidInput

from .domain import TaskItem

ALL = "all"
STATUS_FILTERS = (ALL, "ongoing", "finished")


def filter_tasks(
    tasks: Iterable[TaskItem],
    status: str = ALL,
    category: str = ALL,
    priority: str = ALL,
) -> List[TaskItem]:
    """
    Conjunctive status/category/priority filter. Input order is kept.

    status: all | ongoing (open) | finished (completed)
    category, priority: "all" or an exact value
    """
    if status not in STATUS_FILTERS:
        raise InvalidInput(f"Unknown status filter: {status}")

    def matches(task: TaskItem) -> bool:
        if status == "ongoing" and task.completed:
            return False
        if status == "finished" and not task.completed:
            return False
        if category != ALL and task.category != category:
            return False
        if priority != ALL and task.priority != priority:
            return False
        return True

    return [t for t in tasks if matches(t)]


def status_counts(tasks: Iterable[TaskItem]) -> Dict[str, int]:
    tasks = list(tasks)
    finished = sum(1 for t in tasks if t.completed)
    return {"all": len(tasks), "ongoing": len(tasks) - finished, "finished": finished}


def due_reminders(
    tasks: Iterable[TaskItem],
    now: Optional[datetime.datetime] = None,
) -> List[TaskItem]:
    """Open tasks whose reminder time has passed."""
    if now is None:
        now = timezone.now()
    return [
        t for t in tasks
        if t.reminder_time is not None and not t.completed and t.reminder_time <= now
    ]
