# tasks/tests/factories.py

import datetime
import uuid

from tasks.domain import TaskItem

BASE_TIME = datetime.datetime(2024, 1, 15, 12, 0, 0, tzinfo=datetime.timezone.utc)


def make_item(text="Write report", completed=False, category="work", priority="medium", minutes=0, **extra):
    """TaskItem with a fixed creation time offset by ``minutes``."""
    created = BASE_TIME + datetime.timedelta(minutes=minutes)
    return TaskItem(
        id=extra.pop("id", uuid.uuid4()),
        text=text,
        completed=completed,
        category=category,
        priority=priority,
        created_at=created,
        completed_at=extra.pop("completed_at", created if completed else None),
        **extra,
    )
