from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from watchbot.batch.errors import AlreadyOpenError, NoOpenBatchError
from watchbot.batch.models import Batch, BatchState, CurrentBatch
from watchbot.common.time import utcnow
from watchbot.outbox.models import OutboxKind
from watchbot.outbox.repo import enqueue
from watchbot.resource.models import Resource

logger = logging.getLogger(__name__)


class BatchService:
    """Per-user batch lifecycle.

    The `current_batch` row is the only record of which batch a user has open;
    every transition that ends a batch removes it in the same transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _pointer(self, user_id: int) -> CurrentBatch | None:
        return self.db.get(CurrentBatch, user_id)

    def current_batch_id(self, user_id: int) -> int | None:
        pointer = self._pointer(user_id)
        return pointer.batch_id if pointer else None

    def current_state(self, user_id: int) -> BatchState | None:
        pointer = self._pointer(user_id)
        return pointer.batch.state if pointer else None

    def open(self, user_id: int) -> int:
        if self._pointer(user_id) is not None:
            raise AlreadyOpenError(user_id)

        batch = Batch(user_id=user_id, state=BatchState.OPEN)
        self.db.add(batch)
        try:
            self.db.flush()
            self.db.add(CurrentBatch(user_id=user_id, batch_id=batch.id))
            self.db.commit()
        except IntegrityError as exc:
            # Lost the race against a concurrent open for the same user.
            self.db.rollback()
            raise AlreadyOpenError(user_id) from exc

        logger.info("batch opened", extra={"user_id": user_id, "batch_id": batch.id})
        return batch.id

    def mark_waiting_title(self, user_id: int) -> int:
        pointer = self._pointer(user_id)
        if pointer is None or pointer.batch.state != BatchState.OPEN:
            raise NoOpenBatchError(user_id)

        pointer.batch.state = BatchState.WAITING_TITLE
        self.db.commit()
        return pointer.batch_id

    def commit(self, user_id: int, title: str | None = None) -> int:
        """Commit the open batch and enqueue its sync tasks atomically.

        Enqueues one push_batch task and one push_resource task per resource
        in sequence order.
        """
        pointer = self._pointer(user_id)
        if pointer is None:
            raise NoOpenBatchError(user_id)

        batch = pointer.batch
        now = utcnow()
        try:
            batch.state = BatchState.COMMITTED
            batch.committed_at = now
            if title is not None:
                batch.title = title

            enqueue(self.db, user_id, OutboxKind.PUSH_BATCH, batch.id, now)
            resource_ids = [
                rid
                for (rid,) in self.db.query(Resource.id)
                .filter(Resource.batch_id == batch.id)
                .order_by(Resource.sequence.asc())
                .all()
            ]
            for resource_id in resource_ids:
                enqueue(self.db, user_id, OutboxKind.PUSH_RESOURCE, resource_id, now)

            self.db.delete(pointer)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "batch committed",
            extra={"user_id": user_id, "batch_id": batch.id, "resources": len(resource_ids)},
        )
        return batch.id

    def rollback(self, user_id: int) -> int:
        pointer = self._pointer(user_id)
        if pointer is None:
            raise NoOpenBatchError(user_id)

        batch = pointer.batch
        batch.state = BatchState.ROLLED_BACK
        batch.rolled_back_at = utcnow()
        self.db.delete(pointer)
        self.db.commit()

        logger.info("batch rolled back", extra={"user_id": user_id, "batch_id": batch.id})
        return batch.id
