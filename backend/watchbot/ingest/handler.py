"""Turns inbound chat messages into batch transitions and resources."""
from __future__ import annotations

import logging
import threading
import weakref
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from watchbot.batch.errors import AlreadyOpenError, NoOpenBatchError
from watchbot.batch.models import BatchState
from watchbot.batch.service import BatchService
from watchbot.database import SessionLocal
from watchbot.ingest.errors import UserNotAllowedError
from watchbot.ingest.schemas import IncomingMessage, IngestOutcome
from watchbot.resource.models import ResourceKind
from watchbot.resource.service import ResourceService
from watchbot.user.service import UserService

logger = logging.getLogger(__name__)

CMD_BEGIN = "==BEGIN=="
CMD_COMMIT = "==COMMIT=="
CMD_ROLLBACK = "==ROLLBACK=="

REPLY_OPENED = "Batch opened."
REPLY_ALREADY_OPEN = "A batch is already open."
REPLY_ASK_TITLE = "Please input title:"
REPLY_NOTHING_TO_COMMIT = "No open batch to commit."
REPLY_ROLLED_BACK = "Rolled back."
REPLY_NOTHING_TO_ROLL_BACK = "No open batch to roll back."
REPLY_TITLE_EMPTY = "Invalid input: title must be a non-empty text message. Please send text."
REPLY_TITLE_NOT_TEXT = "Invalid input: title must be a text message. Please send text."


class IngestHandler:
    """Serializes messages per sender and applies them to the store.

    Each message runs in its own session; a sender's messages never interleave.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        *,
        allowed_users: Iterable[int] = (),
    ) -> None:
        self.session_factory = session_factory or SessionLocal
        self.allowed_users = frozenset(allowed_users)
        # Entries disappear once no message of that sender is in flight.
        self._locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, external_user_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(external_user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[external_user_id] = lock
            return lock

    def handle(self, message: IncomingMessage) -> IngestOutcome:
        if self.allowed_users and message.external_user_id not in self.allowed_users:
            logger.warning("message from disallowed user", extra={"external_user_id": message.external_user_id})
            raise UserNotAllowedError(message.external_user_id)

        lock = self._lock_for(message.external_user_id)
        with lock:
            db = self.session_factory()
            try:
                return self._handle(db, message)
            finally:
                db.close()

    def _handle(self, db: Session, message: IncomingMessage) -> IngestOutcome:
        user = UserService(db).get_or_create(
            message.external_user_id,
            username=message.username,
            display_name=message.display_name,
        )
        outcome = IngestOutcome()
        batches = BatchService(db)

        if batches.current_state(user.id) == BatchState.WAITING_TITLE:
            self._handle_title(batches, user.id, message, outcome)
            return outcome

        if message.text is not None:
            self._handle_text(db, user.id, message.text, message.message_id, outcome, allow_commands=True)
            return outcome

        # Captions are content, never commands.
        if message.caption is not None:
            self._handle_text(db, user.id, message.caption, message.message_id, outcome, allow_commands=False)

        if message.media is not None:
            resource_id = ResourceService(db).insert(
                user.id,
                batches.current_batch_id(user.id),
                ResourceKind(message.media.kind),
                message.media.path,
                media_name=message.media.name,
                media_url=message.media.url,
                source_message_id=message.message_id,
            )
            outcome.resource_ids.append(resource_id)

        return outcome

    def _handle_title(
        self,
        batches: BatchService,
        user_id: int,
        message: IncomingMessage,
        outcome: IngestOutcome,
    ) -> None:
        if message.text is None:
            outcome.replies.append(REPLY_TITLE_NOT_TEXT)
            return

        title = message.text.strip()
        try:
            if title == CMD_ROLLBACK:
                batches.rollback(user_id)
                outcome.replies.append(REPLY_ROLLED_BACK)
            elif not title:
                outcome.replies.append(REPLY_TITLE_EMPTY)
            else:
                batches.commit(user_id, title)
                outcome.replies.append(f"Committed batch with title: {title}")
        except NoOpenBatchError:
            outcome.replies.append(REPLY_NOTHING_TO_COMMIT)

    def _handle_text(
        self,
        db: Session,
        user_id: int,
        text: str,
        message_id: int | None,
        outcome: IngestOutcome,
        *,
        allow_commands: bool,
    ) -> None:
        batches = BatchService(db)
        command = text.strip() if allow_commands else None

        if command == CMD_BEGIN:
            try:
                batches.open(user_id)
                outcome.replies.append(REPLY_OPENED)
            except AlreadyOpenError:
                outcome.replies.append(REPLY_ALREADY_OPEN)
            return

        if command == CMD_COMMIT:
            try:
                batches.mark_waiting_title(user_id)
                outcome.replies.append(REPLY_ASK_TITLE)
            except NoOpenBatchError:
                outcome.replies.append(REPLY_NOTHING_TO_COMMIT)
            return

        if command == CMD_ROLLBACK:
            try:
                batches.rollback(user_id)
                outcome.replies.append(REPLY_ROLLED_BACK)
            except NoOpenBatchError:
                outcome.replies.append(REPLY_NOTHING_TO_ROLL_BACK)
            return

        if not text.strip():
            return

        resource_id = ResourceService(db).insert(
            user_id,
            batches.current_batch_id(user_id),
            ResourceKind.TEXT,
            text,
            source_message_id=message_id,
        )
        outcome.resource_ids.append(resource_id)
