from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from watchbot.user.models import User


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def find_by_external_id(self, external_user_id: int) -> User | None:
        return self.db.query(User).filter(User.external_user_id == external_user_id).first()

    def get_or_create(
        self,
        external_user_id: int,
        *,
        username: str | None = None,
        display_name: str | None = None,
    ) -> User:
        """Return the user for an external id, creating it on first sighting.

        Existing rows are never updated.
        """
        user = self.find_by_external_id(external_user_id)
        if user:
            return user

        user = User(
            external_user_id=external_user_id,
            username=username,
            display_name=display_name,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created the same user first.
            self.db.rollback()
            existing = self.find_by_external_id(external_user_id)
            if existing is None:
                raise
            return existing
        self.db.refresh(user)
        return user
