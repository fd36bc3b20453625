from __future__ import annotations

import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from watchbot.common.models import CreatedAtMixin, IntPrimaryKeyMixin
from watchbot.database import Base


class BatchState(str, enum.Enum):
    OPEN = "OPEN"
    WAITING_TITLE = "WAITING_TITLE"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


class Batch(IntPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "batches"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    state = Column(
        Enum(BatchState, name="batch_state", native_enum=False, length=16),
        nullable=False,
        default=BatchState.OPEN,
    )
    title = Column(Text, nullable=True)
    external_page_id = Column(String(64), nullable=True)
    committed_at = Column(DateTime(timezone=True), nullable=True)
    rolled_back_at = Column(DateTime(timezone=True), nullable=True)

    resources = relationship("Resource", back_populates="batch", order_by="Resource.sequence")

    __table_args__ = (Index("idx_batches_user_id", "user_id"),)


class CurrentBatch(Base):
    """One row per user pointing at the user's non-terminal batch."""

    __tablename__ = "current_batch"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False)

    batch = relationship(Batch, lazy="joined")
