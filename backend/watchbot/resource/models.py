from __future__ import annotations

import enum

from sqlalchemy import BigInteger, Column, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from watchbot.common.models import CreatedAtMixin, IntPrimaryKeyMixin
from watchbot.database import Base


class ResourceKind(str, enum.Enum):
    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"

    @property
    def is_media(self) -> bool:
        return self is not ResourceKind.TEXT


class Resource(IntPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "resources"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # Resources are kept when their batch is rolled back.
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=True)
    kind = Column(
        Enum(
            ResourceKind,
            name="resource_kind",
            native_enum=False,
            length=16,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False, default=1)
    text = Column(Text, nullable=True)
    media_name = Column(String(512), nullable=True)
    media_url = Column(Text, nullable=True)
    external_page_id = Column(String(64), nullable=True)
    source_message_id = Column(BigInteger, nullable=True)

    batch = relationship("Batch", back_populates="resources")

    __table_args__ = (
        UniqueConstraint("batch_id", "sequence", name="uq_resources_batch_sequence"),
        Index("idx_resources_user_id", "user_id"),
    )
