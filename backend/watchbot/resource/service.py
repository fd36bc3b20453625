from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from watchbot.common.time import utcnow
from watchbot.outbox.models import OutboxKind
from watchbot.outbox.repo import enqueue
from watchbot.resource.models import Resource, ResourceKind

logger = logging.getLogger(__name__)

_INSERT_RETRIES = 3


class ResourceService:
    def __init__(self, db: Session):
        self.db = db

    def list_for_batch(self, batch_id: int) -> list[Resource]:
        return (
            self.db.query(Resource)
            .filter(Resource.batch_id == batch_id)
            .order_by(Resource.sequence.asc())
            .all()
        )

    def _next_sequence(self, batch_id: int | None) -> int:
        if batch_id is None:
            return 1
        current = self.db.query(func.max(Resource.sequence)).filter(Resource.batch_id == batch_id).scalar()
        return (current or 0) + 1

    def insert(
        self,
        user_id: int,
        batch_id: int | None,
        kind: ResourceKind | str,
        content: str,
        *,
        text: str | None = None,
        media_name: str | None = None,
        media_url: str | None = None,
        source_message_id: int | None = None,
    ) -> int:
        """Store a resource with the next sequence number of its batch.

        A resource without a batch is standalone: sequence 1 and its own
        push_resource task, enqueued in the same transaction.
        """
        kind = ResourceKind(kind)
        if kind == ResourceKind.TEXT and text is None:
            text = content

        attempt = 0
        while True:
            attempt += 1
            try:
                resource = Resource(
                    user_id=user_id,
                    batch_id=batch_id,
                    kind=kind,
                    content=content,
                    sequence=self._next_sequence(batch_id),
                    text=text,
                    media_name=media_name,
                    media_url=media_url,
                    source_message_id=source_message_id,
                )
                self.db.add(resource)
                self.db.flush()
                if batch_id is None:
                    enqueue(self.db, user_id, OutboxKind.PUSH_RESOURCE, resource.id, utcnow())
                self.db.commit()
            except IntegrityError:
                # Another writer took the same (batch_id, sequence).
                self.db.rollback()
                if attempt >= _INSERT_RETRIES:
                    raise
                logger.info(
                    "sequence conflict, retrying",
                    extra={"batch_id": batch_id, "attempt": attempt},
                )
                continue

            logger.debug(
                "resource inserted",
                extra={"resource_id": resource.id, "batch_id": batch_id, "sequence": resource.sequence},
            )
            return resource.id
