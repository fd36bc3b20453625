from __future__ import annotations

from sqlalchemy import BigInteger, Column, String

from watchbot.common.models import CreatedAtMixin, IntPrimaryKeyMixin
from watchbot.database import Base


class User(IntPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "users"

    external_user_id = Column(BigInteger, nullable=False, unique=True)
    username = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
