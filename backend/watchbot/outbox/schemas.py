from __future__ import annotations

from datetime import datetime

from watchbot.common.schemas import CamelModel, OrmModel
from watchbot.outbox.models import OutboxKind


class OutboxStatsResponse(CamelModel):
    remaining: int
    due: int
    max_attempt: int
    last_processed_id: int


class OutboxTaskResponse(OrmModel):
    id: int
    user_id: int
    kind: OutboxKind
    ref_id: int
    attempt: int
    due_at: datetime
    last_error: str | None = None
