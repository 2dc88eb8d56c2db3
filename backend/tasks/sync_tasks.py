# tasks/sync_tasks.py

import logging
import uuid
from typing import Any, Dict

from celery import shared_task

from api.exceptions import PersistenceError
from .domain import TaskItem
from .stores import RemoteStore

# Configure logging for background worker monitoring
logger = logging.getLogger(__name__)

SYNC_OPS = ("create", "update", "delete")


def apply_remote_write(op: str, user_id: Any, payload: Dict[str, Any]) -> None:
    """
    Re-run one remote write. ``payload`` is the device encoding of the task
    (JSON friendly), or just ``{"id": ...}`` for deletes.
    """
    if op not in SYNC_OPS:
        raise ValueError(f"Unknown sync op: {op}")

    store = RemoteStore(user_id)
    task_id = uuid.UUID(str(payload["id"]))

    if op == "delete":
        store.delete(task_id)
        return

    task = TaskItem.from_storage(payload)
    if op == "create":
        # A replayed insert whose first attempt did land is already done.
        if store.get(task_id) is not None:
            logger.info(f"Replay create skipped: task {task_id} already stored")
            return
        store.create(task)
    else:
        store.update(task)


@shared_task(
    bind=True,
    autoretry_for=(PersistenceError,),
    retry_backoff=True,
    retry_backoff_max=600,  # Max backoff of 10 minutes
    max_retries=3,
    time_limit=30,          # Hard limit for the task process
    soft_time_limit=25      # Soft limit to allow cleanup
)
def replay_remote_write(self, op: str, user_id: Any, payload: Dict[str, Any]) -> str:
    """
    Worker: retry a remote task write that failed during a request.
    Input = (op, user_id, payload) only; no request state is needed.
    """
    logger.info(f"Replaying remote {op} for user {user_id} (attempt {self.request.retries + 1})")
    try:
        apply_remote_write(op, user_id, payload)
    except PersistenceError as exc:
        logger.warning(f"Remote {op} for user {user_id} failed again: {exc}")
        # Re-raise for Celery retry policy
        raise
    logger.info(f"Remote {op} for user {user_id} persisted")
    return op
