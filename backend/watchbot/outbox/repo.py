"""Outbox repository: enqueue, pick the next due task, ack and retry."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from watchbot.common.time import utcnow
from watchbot.outbox.models import OutboxCursor, OutboxKind, OutboxTask

logger = logging.getLogger(__name__)

BACKOFF_BASE_SEC = 5
BACKOFF_MAX_EXPONENT = 10
DEFAULT_BACKOFF_CAP_SEC = 3600
LAST_ERROR_MAX_CHARS = 4000
CURSOR_ROW_ID = 1


def compute_backoff(attempt: int, cap_sec: int = DEFAULT_BACKOFF_CAP_SEC) -> timedelta:
    """Delay before the next try of a task that has failed `attempt` times before.

    Args:
        attempt: Attempt count before this failure is recorded
        cap_sec: Ceiling in seconds; non-positive values use the default ceiling

    Returns:
        timedelta to add to the failure time
    """
    if cap_sec <= 0:
        cap_sec = DEFAULT_BACKOFF_CAP_SEC
    exponent = min(max(attempt, 0), BACKOFF_MAX_EXPONENT)
    delay = min(BACKOFF_BASE_SEC * (2**exponent), cap_sec)
    return timedelta(seconds=delay)


def enqueue(
    db: Session,
    user_id: int,
    kind: OutboxKind,
    ref_id: int,
    due_at: datetime | None = None,
) -> OutboxTask:
    """Add a task to the caller's transaction.

    Flushes so the row gets an id but never commits: the task must become
    visible together with the state change that made it actionable.
    """
    task = OutboxTask(
        user_id=user_id,
        kind=OutboxKind(kind),
        ref_id=ref_id,
        attempt=0,
        due_at=due_at or utcnow(),
    )
    db.add(task)
    db.flush()
    return task


def _priority():
    # push_batch before push_resource so parents are created first.
    return case((OutboxTask.kind == OutboxKind.PUSH_BATCH, 0), else_=1)


class OutboxRepo:
    """Queries and mutations on the outbox table for the sync worker."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def next_due(self, now: datetime) -> OutboxTask | None:
        return (
            self.db.query(OutboxTask)
            .filter(OutboxTask.due_at <= now)
            .order_by(_priority(), OutboxTask.due_at.asc(), OutboxTask.id.asc())
            .first()
        )

    def list_due(self, now: datetime, *, limit: int = 100) -> list[OutboxTask]:
        return (
            self.db.query(OutboxTask)
            .filter(OutboxTask.due_at <= now)
            .order_by(_priority(), OutboxTask.due_at.asc(), OutboxTask.id.asc())
            .limit(limit)
            .all()
        )

    def get(self, task_id: int) -> OutboxTask | None:
        return self.db.get(OutboxTask, task_id)

    def mark_succeeded(self, *, task_id: int) -> bool:
        """Delete a finished task and advance the progress cursor.

        Returns:
            False if the task was already gone
        """
        task = self.get(task_id)
        if task is None:
            logger.warning("mark_succeeded: task not found", extra={"outbox_id": task_id})
            return False

        self.db.delete(task)
        cursor = self.db.get(OutboxCursor, CURSOR_ROW_ID)
        if cursor is None:
            cursor = OutboxCursor(id=CURSOR_ROW_ID, last_sent_outbox_id=task_id)
            self.db.add(cursor)
        else:
            cursor.last_sent_outbox_id = task_id
            cursor.updated_at = utcnow()
        self.db.commit()
        return True

    def mark_failed(
        self,
        *,
        task_id: int,
        now: datetime,
        error_message: str,
        cap_sec: int = DEFAULT_BACKOFF_CAP_SEC,
    ) -> datetime | None:
        """Record a failed try and push the task's due time forward.

        Returns:
            The new due time, or None if the task no longer exists
        """
        task = self.get(task_id)
        if task is None:
            logger.warning("mark_failed: task not found", extra={"outbox_id": task_id})
            return None

        attempt_before = task.attempt or 0
        next_due_at = now + compute_backoff(attempt_before, cap_sec)
        task.attempt = attempt_before + 1
        task.due_at = next_due_at
        # Truncate error message to prevent DB bloat
        task.last_error = error_message[:LAST_ERROR_MAX_CHARS] if error_message else None
        self.db.commit()
        return next_due_at

    def count_remaining(self) -> int:
        return self.db.query(func.count(OutboxTask.id)).scalar() or 0

    def count_due(self, now: datetime) -> int:
        return self.db.query(func.count(OutboxTask.id)).filter(OutboxTask.due_at <= now).scalar() or 0

    def max_attempt(self) -> int:
        return self.db.query(func.max(OutboxTask.attempt)).scalar() or 0

    def last_processed_id(self) -> int:
        cursor = self.db.get(OutboxCursor, CURSOR_ROW_ID)
        return cursor.last_sent_outbox_id if cursor else 0
