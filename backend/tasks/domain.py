# tasks/domain.py
"""
In-memory task record and its two encodings.

- Device encoding: camelCase JSON objects, datetimes as ISO 8601 strings,
  dates as ``YYYY-MM-DD``.
- Remote encoding: snake_case row fields matching ``tasks.models.Task``.

Both mappings are total: every optional field round-trips, and absent or
null values are treated the same.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

PRIORITIES = ("high", "medium", "low")


@dataclass(frozen=True)
class TaskItem:
    id: uuid.UUID
    text: str
    completed: bool
    category: str
    priority: str
    created_at: datetime.datetime
    completed_at: Optional[datetime.datetime] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reminder_time: Optional[datetime.datetime] = None

    # ---- lifecycle ----

    @classmethod
    def new(cls, text: str, category: str, priority: str, **optional: Any) -> "TaskItem":
        return cls(
            id=uuid.uuid4(),
            text=text,
            completed=False,
            category=category,
            priority=priority,
            created_at=timezone.now(),
            **optional,
        )

    def mark_completed(self, when: Optional[datetime.datetime] = None) -> "TaskItem":
        return replace(self, completed=True, completed_at=when or timezone.now())

    def mark_open(self) -> "TaskItem":
        return replace(self, completed=False, completed_at=None)

    # ---- device encoding ----

    def to_storage(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "text": self.text,
            "completed": self.completed,
            "category": self.category,
            "priority": self.priority,
            "createdAt": _dt_out(self.created_at),
            "completedAt": _dt_out(self.completed_at),
            "startDate": _date_out(self.start_date),
            "endDate": _date_out(self.end_date),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "reminderTime": _dt_out(self.reminder_time),
        }

    @classmethod
    def from_storage(cls, raw: Dict[str, Any]) -> "TaskItem":
        completed = bool(raw.get("completed"))
        completed_at = _dt_in(raw.get("completedAt"))
        if completed and completed_at is None:
            # Keep completed <=> completed_at for hand-edited or legacy entries.
            completed_at = _dt_in(raw.get("createdAt")) or timezone.now()
        return cls(
            id=uuid.UUID(str(raw["id"])),
            text=str(raw.get("text") or ""),
            completed=completed,
            category=str(raw.get("category") or "other"),
            priority=_priority_in(raw.get("priority")),
            created_at=_dt_in(raw.get("createdAt")) or timezone.now(),
            completed_at=completed_at if completed else None,
            start_date=_date_in(raw.get("startDate")),
            end_date=_date_in(raw.get("endDate")),
            start_time=raw.get("startTime") or None,
            end_time=raw.get("endTime") or None,
            reminder_time=_dt_in(raw.get("reminderTime")),
        )

    # ---- remote encoding ----

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "category": self.category,
            "priority": self.priority,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "reminder_time": self.reminder_time,
        }

    @classmethod
    def from_row(cls, row: Any) -> "TaskItem":
        return cls(
            id=row.id,
            text=row.text,
            completed=row.completed,
            category=row.category,
            priority=row.priority,
            created_at=row.created_at,
            completed_at=row.completed_at,
            start_date=row.start_date,
            end_date=row.end_date,
            start_time=row.start_time or None,
            end_time=row.end_time or None,
            reminder_time=row.reminder_time,
        )


# ---------------------------------------------------------------------------
# Field codecs
# ---------------------------------------------------------------------------


def _priority_in(value: Any) -> str:
    value = str(value or "").lower()
    return value if value in PRIORITIES else "medium"


def _dt_out(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _date_out(value: Optional[datetime.date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt_in(value: Any) -> Optional[datetime.datetime]:
    if not value:
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    else:
        # JS toISOString() uses a trailing Z, which fromisoformat only accepts on 3.11+.
        try:
            parsed = parse_datetime(str(value).replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is None:
            return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _date_in(value: Any) -> Optional[datetime.date]:
    if not value:
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    # Older device entries hold a full timestamp; the leading YYYY-MM-DD is the date.
    try:
        return parse_date(str(value)[:10])
    except ValueError:
        return None
