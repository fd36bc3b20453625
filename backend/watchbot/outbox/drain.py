"""Sync every pending outbox task and exit.

Usage:
    python -m watchbot.outbox.drain [--skip-failed] [--max-failed-attempts N]
"""
from __future__ import annotations

import argparse
import logging
import time
from typing import Callable

from watchbot.config import get_settings
from watchbot.outbox.repo import OutboxRepo
from watchbot.outbox.types import DrainResult
from watchbot.outbox.worker import SyncWorker, build_worker_config

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10
BACKOFF_WAIT_SEC = 10.0


def _remaining(worker: SyncWorker) -> tuple[int, int]:
    db = worker.session_factory()
    try:
        repo = OutboxRepo(db)
        return repo.count_remaining(), repo.max_attempt()
    finally:
        db.close()


def drain(
    worker: SyncWorker,
    *,
    skip_failed: bool = False,
    max_failed_attempts: int = 5,
    sleep: Callable[[float], None] = time.sleep,
    backoff_wait_sec: float = BACKOFF_WAIT_SEC,
) -> DrainResult:
    """Run the worker until the outbox is empty or only failing tasks remain.

    When every remaining task is backing off, stop if one of them has reached
    `max_failed_attempts` or `skip_failed` is set; otherwise wait and retry.
    """
    remaining, _ = _remaining(worker)
    logger.info("drain starting remaining=%s", remaining)

    processed = 0
    handled = 0
    while True:
        if worker.process_next():
            handled += 1
            after, _ = _remaining(worker)
            if after < remaining:
                processed += remaining - after
            remaining = after
            if handled % PROGRESS_EVERY == 0:
                logger.info("drain progress processed=%s remaining=%s", processed, remaining)
            continue

        remaining, max_attempt = _remaining(worker)
        if remaining == 0:
            logger.info("all outbox tasks synced processed=%s", processed)
            break

        logger.warning(
            "no due tasks but %s remain; all are in backoff (max_attempt=%s)",
            remaining,
            max_attempt,
        )
        if max_attempt >= max_failed_attempts:
            logger.error(
                "tasks reached %s failed attempts, stopping with %s remaining",
                max_failed_attempts,
                remaining,
            )
            break
        if skip_failed:
            logger.warning("skip_failed set, stopping with %s remaining", remaining)
            break
        sleep(backoff_wait_sec)

    return DrainResult(processed=processed, remaining=remaining)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = get_settings()
    parser = argparse.ArgumentParser(description="Sync all pending outbox tasks to Notion and exit")
    parser.add_argument("--skip-failed", action="store_true", default=settings.drain_skip_failed)
    parser.add_argument("--max-failed-attempts", type=int, default=settings.drain_max_failed_attempts)
    args = parser.parse_args(argv)

    from watchbot.database import init_db
    from watchbot.notion.client import NotionClient

    try:
        settings.validate_notion()
    except ValueError as exc:
        logger.error("invalid Notion configuration: %s", exc)
        raise SystemExit(2)

    settings.ensure_dirs()
    if settings.auto_create_tables:
        init_db()

    client = NotionClient.from_settings(settings)
    try:
        result = drain(
            SyncWorker(build_worker_config(settings), client=client),
            skip_failed=args.skip_failed,
            max_failed_attempts=args.max_failed_attempts,
        )
    finally:
        client.close()

    logger.info("drain finished processed=%s remaining=%s", result.processed, result.remaining)
    raise SystemExit(0 if result.remaining == 0 else 1)


if __name__ == "__main__":
    main()
