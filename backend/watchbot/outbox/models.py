"""ORM models for the sync outbox and its progress cursor."""
from __future__ import annotations

import enum

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from watchbot.common.models import CreatedAtMixin, IntPrimaryKeyMixin
from watchbot.common.time import utcnow
from watchbot.database import Base


class OutboxKind(str, enum.Enum):
    PUSH_BATCH = "push_batch"
    PUSH_RESOURCE = "push_resource"


class OutboxTask(IntPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "outbox"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    kind: Mapped[OutboxKind] = mapped_column(
        Enum(
            OutboxKind,
            name="outbox_kind",
            native_enum=False,
            length=32,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
    )
    # No FK: the task refers to a batch or a resource depending on kind.
    ref_id: Mapped[int] = mapped_column(Integer, nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_outbox_due_at", "due_at"),
        Index("idx_outbox_kind_ref", "kind", "ref_id"),
    )


class OutboxCursor(Base):
    __tablename__ = "outbox_cursor"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    last_sent_outbox_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[DateTime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
