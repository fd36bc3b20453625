from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from watchbot.common.schemas import ApiResponse
from watchbot.common.time import utcnow
from watchbot.database import get_db
from watchbot.outbox.repo import OutboxRepo
from watchbot.outbox.schemas import OutboxStatsResponse, OutboxTaskResponse

router = APIRouter(prefix="/api/outbox", tags=["outbox"])


@router.get("/stats", response_model=ApiResponse)
def stats(db: Session = Depends(get_db)) -> ApiResponse:
    repo = OutboxRepo(db)
    data = OutboxStatsResponse(
        remaining=repo.count_remaining(),
        due=repo.count_due(utcnow()),
        max_attempt=repo.max_attempt(),
        last_processed_id=repo.last_processed_id(),
    )
    return ApiResponse.ok(data.model_dump(by_alias=True))


@router.get("/tasks", response_model=ApiResponse)
def due_tasks(
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> ApiResponse:
    """Tasks that are due now, in the order the worker will pick them."""
    tasks = OutboxRepo(db).list_due(utcnow(), limit=limit)
    return ApiResponse.ok(
        [OutboxTaskResponse.model_validate(t).model_dump(by_alias=True, mode="json") for t in tasks]
    )
