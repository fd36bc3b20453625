"""Outbox sync worker: pushes committed batches and their resources to Notion.

Usage:
    python -m watchbot.outbox.worker

The worker polls the outbox table for due tasks, one at a time, and
supports graceful shutdown via SIGINT/SIGTERM.
"""
from __future__ import annotations

import logging
import signal
from datetime import datetime
from pathlib import Path
from threading import Event, Thread
from typing import Callable

from sqlalchemy.orm import Session

from watchbot.batch.models import Batch, BatchState
from watchbot.common.time import utcnow
from watchbot.config import Settings, get_settings
from watchbot.database import SessionLocal, import_models
from watchbot.notion.base import RemoteSyncClient, SupportsFileUpload
from watchbot.notion.errors import NotionError
from watchbot.notion.types import UploadedFile
from watchbot.outbox.errors import MissingEntityError, NotReadyError, ParentNotReadyError
from watchbot.outbox.media import sanitize_media_name, sanitize_media_url, thumbnail_path
from watchbot.outbox.models import OutboxKind
from watchbot.outbox.repo import OutboxRepo
from watchbot.outbox.types import WorkerConfig
from watchbot.resource.models import Resource, ResourceKind
import watchbot.user.models  # noqa: F401

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


def build_worker_config(settings: Settings | None = None) -> WorkerConfig:
    """Build worker configuration from settings."""
    settings = settings or get_settings()
    return WorkerConfig(
        poll_interval_ms=settings.poll_interval_ms,
        max_backoff_seconds=settings.max_backoff_seconds,
        data_dir=settings.resolved_data_dir(),
        transient_media_hosts=tuple(settings.transient_media_hosts_list()),
    )


class SyncWorker:
    """Single-flight worker that drains the outbox in priority order."""

    def __init__(
        self,
        cfg: WorkerConfig,
        *,
        client: RemoteSyncClient,
        session_factory: Callable[[], Session] | None = None,
    ) -> None:
        self.cfg = cfg
        self.client = client
        self.session_factory = session_factory or SessionLocal

    def run_forever(self, stop_event: Event) -> int:
        """Run the worker loop until stop_event is set.

        Returns:
            Exit code (0 for normal shutdown)
        """
        logger.info(
            "sync worker starting",
            extra={
                "poll_interval_ms": self.cfg.poll_interval_ms,
                "max_backoff_seconds": self.cfg.max_backoff_seconds,
            },
        )

        while not stop_event.is_set():
            try:
                if not self.process_next():
                    stop_event.wait(self.cfg.poll_interval_ms / 1000.0)
            except Exception:
                logger.exception("sync worker poll error")
                # Wait before retrying to avoid tight error loop
                stop_event.wait(self.cfg.poll_interval_ms / 1000.0)

        logger.info("sync worker stopped")
        return 0

    def process_next(self, now: datetime | None = None) -> bool:
        """Handle the next due task, if any.

        A given `now` is used both to select the task and as the failure time;
        otherwise retries are scheduled from the moment the push failed.

        Returns:
            True if a task was found (whether it succeeded or not)
        """
        pinned_now = now
        now = now or utcnow()
        db = self.session_factory()
        try:
            repo = OutboxRepo(db)
            task = repo.next_due(now)
            if task is None:
                return False

            task_id, kind, ref_id, attempt = task.id, OutboxKind(task.kind), task.ref_id, task.attempt
            try:
                if kind == OutboxKind.PUSH_BATCH:
                    self._push_batch(db, ref_id)
                else:
                    self._push_resource(db, ref_id)
            except Exception as exc:
                db.rollback()
                failed_at = pinned_now or utcnow()
                self._handle_failure(repo, task_id, kind, ref_id, attempt, exc, failed_at)
                return True

            repo.mark_succeeded(task_id=task_id)
            logger.info(
                "sync succeeded outbox_id=%s kind=%s ref_id=%s",
                task_id,
                kind.value,
                ref_id,
            )
            return True
        finally:
            db.close()

    def _push_batch(self, db: Session, batch_id: int) -> None:
        batch = db.get(Batch, batch_id)
        if batch is None:
            raise MissingEntityError(f"batch {batch_id} not found")
        if batch.external_page_id:
            return
        if batch.state != BatchState.COMMITTED:
            raise NotReadyError(f"batch {batch_id} is {batch.state.value}, not COMMITTED")

        page_id = self.client.create_batch_page((batch.title or "").strip() or UNTITLED)
        batch.external_page_id = page_id
        db.commit()

    def _push_resource(self, db: Session, resource_id: int) -> None:
        resource = db.get(Resource, resource_id)
        if resource is None:
            raise MissingEntityError(f"resource {resource_id} not found")
        if resource.external_page_id:
            return

        parent_id: str | None = None
        if resource.batch_id is not None:
            batch = db.get(Batch, resource.batch_id)
            if batch is None:
                raise MissingEntityError(f"batch {resource.batch_id} of resource {resource_id} not found")
            if batch.state != BatchState.COMMITTED or not batch.external_page_id:
                raise ParentNotReadyError(f"batch {batch.id} has no page yet")
            parent_id = batch.external_page_id

        kind = ResourceKind(resource.kind)
        media_url = sanitize_media_url(resource.media_url, self.cfg.transient_media_hosts)
        media_name = sanitize_media_name(resource.media_name)

        files: list[UploadedFile] = []
        if kind.is_media and media_url is None and isinstance(self.client, SupportsFileUpload):
            files = self._upload_media(resource, kind, media_name)

        if files:
            page_id = self.client.create_resource_page_with_uploads(
                parent_external_id=parent_id,
                sequence=resource.sequence,
                text=resource.text,
                files=files,
            )
        else:
            page_id = self.client.create_resource_page(
                parent_external_id=parent_id,
                sequence=resource.sequence,
                text=resource.text,
                media_name=media_name,
                media_url=media_url,
            )

        resource.external_page_id = page_id
        db.commit()

    def _upload_media(self, resource: Resource, kind: ResourceKind, media_name: str | None) -> list[UploadedFile]:
        path = Path(resource.content).expanduser()
        if not path.is_file():
            logger.info(
                "local media missing, pushing text only",
                extra={"resource_id": resource.id, "path": str(path)},
            )
            return []

        files: list[UploadedFile] = []
        if kind == ResourceKind.VIDEO:
            thumb = thumbnail_path(self.cfg.data_dir, path)
            if thumb.is_file():
                files.append(UploadedFile(upload_id=self.client.upload_file(thumb), name=thumb.name))
        files.append(UploadedFile(upload_id=self.client.upload_file(path), name=media_name or path.name))
        return files

    def _handle_failure(
        self,
        repo: OutboxRepo,
        task_id: int,
        kind: OutboxKind,
        ref_id: int,
        attempt: int,
        exc: Exception,
        now: datetime,
    ) -> None:
        error_message = f"{exc.__class__.__name__}: {exc}"
        next_due_at = repo.mark_failed(
            task_id=task_id,
            now=now,
            error_message=error_message,
            cap_sec=self.cfg.max_backoff_seconds,
        )

        args = (task_id, kind.value, ref_id, attempt + 1, next_due_at.isoformat() if next_due_at else None, str(exc)[:200])
        msg = "sync retry scheduled outbox_id=%s kind=%s ref_id=%s attempt=%s next_due_at=%s error=%s"
        if isinstance(exc, NotReadyError):
            logger.info(msg, *args)
        elif isinstance(exc, NotionError):
            logger.warning(msg, *args)
        elif isinstance(exc, MissingEntityError):
            logger.error(msg, *args)
        else:
            logger.error(msg, *args, exc_info=exc)


def start_worker_thread(worker: SyncWorker) -> tuple[Thread, Event]:
    stop_event = Event()
    thread = Thread(target=worker.run_forever, args=(stop_event,), name="sync-worker", daemon=True)
    thread.start()
    return thread, stop_event


def main() -> None:
    """Main entry point for the worker process."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from watchbot.database import init_db
    from watchbot.notion.client import NotionClient

    settings = get_settings()
    try:
        settings.validate_notion()
    except ValueError as exc:
        logger.error("invalid Notion configuration: %s", exc)
        raise SystemExit(2)

    settings.ensure_dirs()
    import_models()
    if settings.auto_create_tables:
        init_db()

    client = NotionClient.from_settings(settings)
    worker = SyncWorker(build_worker_config(settings), client=client)

    stop_event = Event()

    def handle_signal(signum, _frame):
        logger.info("signal received, initiating shutdown", extra={"signal": signum})
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        exit_code = worker.run_forever(stop_event)
    finally:
        client.close()
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
