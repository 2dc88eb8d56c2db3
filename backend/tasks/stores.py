# tasks/stores.py
"""
Task Store Adapter.

Two persistence backends behind one interface:

- ``LocalStore``: the device (browser session) holds the full task list and
  is rewritten after every mutation. Used by guests and anonymous visitors.
- ``RemoteStore``: one ``tasks.models.Task`` row per task, every query
  filtered by both task id and owner. Used by authenticated users.

``store_for`` is the only place that picks a backend from the identity.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Iterable, List, Optional

from django.db import DatabaseError, transaction

from api.exceptions import PersistenceError
from users.device import TASKS_KEY, DeviceStorage

from .domain import TaskItem
from .models import Task

logger = logging.getLogger(__name__)


class TaskStore(ABC):
    """Persistence contract shared by both backends."""

    is_remote = False

    @abstractmethod
    def load(self) -> List[TaskItem]:
        """All tasks, newest first."""

    @abstractmethod
    def get(self, task_id: uuid.UUID) -> Optional[TaskItem]:
        ...

    @abstractmethod
    def create(self, task: TaskItem) -> None:
        ...

    @abstractmethod
    def update(self, task: TaskItem) -> None:
        ...

    @abstractmethod
    def delete(self, task_id: uuid.UUID) -> None:
        ...


class LocalStore(TaskStore):
    """Device-local task list, serialized in full after each mutation."""

    def __init__(self, device: DeviceStorage) -> None:
        self.device = device

    def load(self) -> List[TaskItem]:
        raw = self.device.get(TASKS_KEY)
        if not isinstance(raw, list):
            return []
        tasks: List[TaskItem] = []
        for entry in raw:
            try:
                tasks.append(TaskItem.from_storage(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable device task entry: {e}")
        return tasks

    def has_tasks(self) -> bool:
        """True once the device has ever saved a task list (even an empty one)."""
        return self.device.has(TASKS_KEY)

    def save_all(self, tasks: Iterable[TaskItem]) -> None:
        self.device.set(TASKS_KEY, [t.to_storage() for t in tasks])

    def get(self, task_id: uuid.UUID) -> Optional[TaskItem]:
        for task in self.load():
            if task.id == task_id:
                return task
        return None

    def create(self, task: TaskItem) -> None:
        self.save_all([task, *self.load()])

    def update(self, task: TaskItem) -> None:
        self.save_all([task if t.id == task.id else t for t in self.load()])

    def delete(self, task_id: uuid.UUID) -> None:
        self.save_all([t for t in self.load() if t.id != task_id])


class RemoteStore(TaskStore):
    """Row store scoped to one user. Database failures raise PersistenceError."""

    is_remote = True

    def __init__(self, user_id: Any) -> None:
        self.user_id = user_id

    def _rows(self):
        return Task.objects.filter(user_id=self.user_id)

    def load(self) -> List[TaskItem]:
        try:
            return [TaskItem.from_row(row) for row in self._rows().order_by('-created_at')]
        except DatabaseError as e:
            raise PersistenceError("Failed to load tasks", details=str(e)) from e

    def get(self, task_id: uuid.UUID) -> Optional[TaskItem]:
        try:
            row = self._rows().filter(id=task_id).first()
        except DatabaseError as e:
            raise PersistenceError("Failed to load task", details=str(e)) from e
        return TaskItem.from_row(row) if row else None

    def create(self, task: TaskItem) -> None:
        try:
            Task.objects.create(user_id=self.user_id, **task.to_row())
        except DatabaseError as e:
            raise PersistenceError("Failed to insert task", details=str(e)) from e

    def update(self, task: TaskItem) -> None:
        fields = task.to_row()
        fields.pop("id")
        try:
            self._rows().filter(id=task.id).update(**fields)
        except DatabaseError as e:
            raise PersistenceError("Failed to update task", details=str(e)) from e

    def delete(self, task_id: uuid.UUID) -> None:
        try:
            self._rows().filter(id=task_id).delete()
        except DatabaseError as e:
            raise PersistenceError("Failed to delete task", details=str(e)) from e

    def bulk_create(self, tasks: List[TaskItem]) -> int:
        """
        Insert many tasks in one transaction (all or nothing) and return the
        number of rows actually inserted.

        Ids this user already owns are skipped, so replaying a migration that
        committed but was never flagged does not duplicate tasks. Ids owned by
        another user (two accounts signing in on one device) get a fresh id.
        """
        if not tasks:
            return 0
        try:
            with transaction.atomic():
                owners = dict(
                    Task.objects.filter(id__in=[task.id for task in tasks]).values_list("id", "user_id")
                )
                rows, seen = [], set()
                for task in tasks:
                    owner = owners.get(task.id)
                    if str(owner) == str(self.user_id) or task.id in seen:
                        continue
                    seen.add(task.id)
                    if owner is not None:
                        new_id = uuid.uuid4()
                        logger.warning(f"Task {task.id} belongs to another user; copied as {new_id}")
                        task = replace(task, id=new_id)
                    rows.append(Task(user_id=self.user_id, **task.to_row()))
                Task.objects.bulk_create(rows)
        except DatabaseError as e:
            raise PersistenceError("Failed to bulk insert tasks", details=str(e)) from e
        return len(rows)


def store_for(identity: Any, device: DeviceStorage) -> TaskStore:
    """Pick the backend for the identity: remote when authenticated, device otherwise."""
    if identity.is_authenticated:
        return RemoteStore(identity.user_id)
    return LocalStore(device)
