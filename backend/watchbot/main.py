from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI

from watchbot.common.exceptions import register_exception_handlers
from watchbot.common.schemas import ApiResponse
from watchbot.config import get_settings
from watchbot.database import import_models, init_db
from watchbot.ingest.router import router as ingest_router
from watchbot.outbox.router import router as outbox_router

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def _start_sync_worker():
    from watchbot.notion.client import NotionClient
    from watchbot.outbox.worker import SyncWorker, build_worker_config, start_worker_thread

    try:
        settings.validate_notion()
    except ValueError as exc:
        logger.error("sync worker not started: %s", exc)
        return None

    client = NotionClient.from_settings(settings)
    worker = SyncWorker(build_worker_config(settings), client=client)
    thread, stop_event = start_worker_thread(worker)
    return client, thread, stop_event


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    settings.ensure_dirs()
    import_models()
    if settings.auto_create_tables:
        init_db()

    running = _start_sync_worker() if settings.sync_worker_enabled else None
    yield
    if running is not None:
        client, thread, stop_event = running
        stop_event.set()
        thread.join(timeout=settings.notion_timeout_sec + 5)
        client.close()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

register_exception_handlers(app, debug=settings.debug)


@app.middleware("http")
async def request_logging_middleware(request, call_next):
    request_logger = logging.getLogger("watchbot.request")
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (time.perf_counter() - start) * 1000.0
        request_logger.exception(
            "request_failed request_id=%s method=%s path=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            duration_ms,
        )
        raise

    duration_ms = (time.perf_counter() - start) * 1000.0
    response.headers["x-request-id"] = request_id
    log_fn = request_logger.info
    if response.status_code >= 500:
        log_fn = request_logger.error
    elif response.status_code >= 400:
        log_fn = request_logger.warning
    log_fn(
        "request_completed request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
        request_id,
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.include_router(ingest_router)
app.include_router(outbox_router)


@app.get("/health", response_model=ApiResponse)
def health() -> ApiResponse:
    return ApiResponse.ok({"status": "ok"})
