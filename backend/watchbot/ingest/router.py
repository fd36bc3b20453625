from __future__ import annotations

from functools import lru_cache

from fastapi import APIRouter, Depends

from watchbot.common.schemas import ApiResponse
from watchbot.config import get_settings
from watchbot.ingest.handler import IngestHandler
from watchbot.ingest.schemas import IncomingMessage

router = APIRouter(prefix="/api/ingest", tags=["ingest"])


@lru_cache(maxsize=1)
def get_ingest_handler() -> IngestHandler:
    return IngestHandler(allowed_users=get_settings().allowed_users_list())


@router.post("/messages", response_model=ApiResponse)
def ingest_message(
    message: IncomingMessage,
    handler: IngestHandler = Depends(get_ingest_handler),
) -> ApiResponse:
    outcome = handler.handle(message)
    return ApiResponse.ok(outcome.model_dump(by_alias=True))
