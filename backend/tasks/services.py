# tasks/services.py

import datetime
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.utils import timezone

from api.exceptions import InvalidInput, PersistenceError, TaskNotFound
from progress.engine import UserStats, apply_completion, leveled_up, revert_completion
from progress.signals import level_up
from progress.state import ProgressState, normalize_category
from users.device import DeviceStorage

from .domain import PRIORITIES, TaskItem
from .filters import due_reminders, filter_tasks, status_counts
from .stores import TaskStore, store_for

# Configure logging
logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "text", "category", "priority",
    "start_date", "end_date", "start_time", "end_time", "reminder_time",
)

SyncErrorCallback = Callable[[str, Dict[str, Any], PersistenceError], None]


@dataclass
class SyncOutcome:
    """Result of pushing one write to the task store."""
    ok: bool = True
    queued_retry: bool = False
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "queued_retry": self.queued_retry, "error": self.error}


@dataclass
class TaskChange:
    """What a mutation did: the (optimistic) task, the stats after it, and the sync outcome."""
    task: Optional[TaskItem]
    stats: UserStats
    changed: bool = True
    leveled_up: bool = False
    sync: SyncOutcome = field(default_factory=SyncOutcome)


class TaskService:
    """
    Task operations for one identity.

    Responsibility:
    - keep completed <=> completed_at on every transition
    - award / take back XP through the gamification engine
    - report remote write failures instead of failing the request: the
      returned task and stats are authoritative for the caller, the failed
      write goes to the retry queue and is reported in ``TaskChange.sync``
    """

    def __init__(
        self,
        identity: Any,
        device: DeviceStorage,
        store: Optional[TaskStore] = None,
        on_sync_error: Optional[SyncErrorCallback] = None,
        tz: Optional[datetime.tzinfo] = None,
    ) -> None:
        self.identity = identity
        self.store = store or store_for(identity, device)
        self.progress = ProgressState.for_identity(identity, device)
        self.on_sync_error = on_sync_error
        # Device calendar, used for the streak.
        self.tz = tz

    # ---- queries ----

    def list(
        self,
        status: str = "all",
        category: str = "all",
        priority: str = "all",
    ) -> Tuple[List[TaskItem], Dict[str, int]]:
        """Visible tasks for the filters plus counts over the unfiltered set."""
        tasks = self.store.load()
        return filter_tasks(tasks, status, category, priority), status_counts(tasks)

    def get(self, task_id: uuid.UUID) -> TaskItem:
        task = self.store.get(task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task

    def reminders(self, now=None) -> List[TaskItem]:
        return due_reminders(self.store.load(), now)

    # ---- mutations ----

    def add(self, text: str, category: str, priority: str, **optional: Any) -> TaskChange:
        text = self._clean_text(text)
        category = self._clean_category(category)
        priority = self._clean_priority(priority)

        task = TaskItem.new(text, category, priority, **optional)
        sync = self._write("create", task)
        logger.info(f"Task {task.id} added for {self.identity}")
        return TaskChange(task=task, stats=self.progress.stats, sync=sync)

    def edit(self, task_id: uuid.UUID, **changes: Any) -> TaskChange:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidInput(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if "text" in changes:
            changes["text"] = self._clean_text(changes["text"])
        if "category" in changes:
            changes["category"] = self._clean_category(changes["category"])
        if "priority" in changes:
            changes["priority"] = self._clean_priority(changes["priority"])

        task = replace(self.get(task_id), **changes)
        sync = self._write("update", task)
        return TaskChange(task=task, stats=self.progress.stats, sync=sync)

    def complete(self, task_id: uuid.UUID) -> TaskChange:
        task = self.get(task_id)
        if task.completed:
            return TaskChange(task=task, stats=self.progress.stats, changed=False)

        task = task.mark_completed()
        sync = self._write("update", task)

        before = self.progress.stats
        after = apply_completion(before, task, today=timezone.localdate(timezone=self.tz))
        self.progress.set_stats(after)

        up = leveled_up(before, after)
        if up:
            level_up.send(sender=self.__class__, identity=self.identity, level=after.level, stats=after)
        logger.info(f"Task {task.id} completed for {self.identity}: xp {before.xp} -> {after.xp}")
        return TaskChange(task=task, stats=after, leveled_up=up, sync=sync)

    def uncomplete(self, task_id: uuid.UUID) -> TaskChange:
        task = self.get(task_id)
        if not task.completed:
            return TaskChange(task=task, stats=self.progress.stats, changed=False)

        task = task.mark_open()
        sync = self._write("update", task)

        stats = revert_completion(self.progress.stats, task)
        self.progress.set_stats(stats)
        return TaskChange(task=task, stats=stats, sync=sync)

    def delete(self, task_id: uuid.UUID) -> TaskChange:
        task = self.get(task_id)
        sync = self._write("delete", task)

        stats = self.progress.stats
        if task.completed:
            # Deleting finished work takes its XP back; the streak stays.
            stats = revert_completion(stats, task)
            self.progress.set_stats(stats)
        return TaskChange(task=None, stats=stats, sync=sync)

    # ---- validation ----

    @staticmethod
    def _clean_text(text: str) -> str:
        text = (text or "").strip()
        if not text:
            raise InvalidInput("Task text is required")
        return text

    def _clean_category(self, category: str) -> str:
        category = normalize_category(category)
        if category not in self.progress.categories:
            raise InvalidInput(f"Unknown category: {category}")
        return category

    @staticmethod
    def _clean_priority(priority: str) -> str:
        priority = (priority or "").strip().lower()
        if priority not in PRIORITIES:
            raise InvalidInput(f"Priority must be one of: {', '.join(PRIORITIES)}")
        return priority

    # ---- store writes ----

    def _write(self, op: str, task: TaskItem) -> SyncOutcome:
        payload = {"id": str(task.id)} if op == "delete" else task.to_storage()
        try:
            if op == "create":
                self.store.create(task)
            elif op == "update":
                self.store.update(task)
            else:
                self.store.delete(task.id)
        except PersistenceError as e:
            logger.error(f"Remote {op} of task {task.id} failed for {self.identity}: {e}")
            if self.on_sync_error is not None:
                self.on_sync_error(op, payload, e)
            return SyncOutcome(ok=False, queued_retry=self._enqueue_retry(op, payload), error=str(e))
        return SyncOutcome()

    def _enqueue_retry(self, op: str, payload: Dict[str, Any]) -> bool:
        if not self.store.is_remote:
            return False
        from .sync_tasks import replay_remote_write
        try:
            replay_remote_write.delay(op, self.identity.user_id, payload)
        except Exception as e:
            # Broker down: the write stays lost until the next full reload.
            logger.exception(f"Could not queue retry of remote {op}: {e}")
            return False
        return True
