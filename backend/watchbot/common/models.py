from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer

from watchbot.common.time import utcnow


class IntPrimaryKeyMixin:
    id = Column(Integer, primary_key=True, autoincrement=True)


class CreatedAtMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
